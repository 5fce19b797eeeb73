"""
Error taxonomy for the DAM API.

Every error carries a user-facing message and the HTTP status the API layer
answers with. Handlers in ``aiva.main`` render them as ``{"error": message}``.
"""
from typing import Any, Dict, List, Optional


class AivaError(Exception):
    """Base error for the DAM service."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message}


# Session / authentication

class AuthenticationError(AivaError):
    status_code = 401


class ProfileNotFoundError(AivaError):
    status_code = 403


class AccessDeniedError(AivaError):
    """A signed storage link that is forged or past its expiry."""
    status_code = 403


class RateLimitExceededError(AivaError):
    status_code = 429


# Validation

class FolderValidationError(AivaError):
    status_code = 400


class DuplicateFolderError(AivaError):
    """A folder with the same case-insensitive name already exists in the tenant."""

    status_code = 409

    def __init__(self, name: str, existing_name: str, suggestions: List[str]):
        super().__init__(
            f'A folder named "{existing_name}" already exists. Please choose a different name.'
        )
        self.name = name
        self.existing_name = existing_name
        self.suggestions = suggestions

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "existing_name": self.existing_name,
            "suggestions": self.suggestions,
        }


class ContentValidationError(AivaError):
    status_code = 400


class NotFoundError(AivaError):
    status_code = 404


class UploadBlockedError(AivaError):
    status_code = 422

    def __init__(self, message: str, detected_issues: Optional[List[str]] = None):
        super().__init__(message)
        self.detected_issues = detected_issues or []

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message, "detected_issues": self.detected_issues}


# Upstream provider

class NotConfiguredError(AivaError):
    status_code = 503


class ProviderError(AivaError):
    """Generative-AI provider answered with an error or could not be reached."""

    status_code = 502


# Storage

class StorageError(AivaError):
    status_code = 500


class PartialDeletionError(StorageError):
    """The storage object was removed but the asset row could not be deleted."""
