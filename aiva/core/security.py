import hmac
import hashlib
import time
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from aiva.core.config import settings


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a session token for a user. Issued by the identity provider in
    production; used directly by operators and tests.
    """
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    payload = {
        "sub": user_id,
        "exp": expire,
    }

    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_access_token(token: str) -> Optional[dict]:
    """
    Verify a session token and return its payload if valid
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def sign_object_key(key: str, expires: int) -> str:
    """HMAC signature granting read access to a storage key until ``expires``."""
    message = f"{key}:{expires}".encode()
    return hmac.new(settings.SECRET_KEY.encode(), message, hashlib.sha256).hexdigest()


def verify_object_signature(key: str, expires: int, signature: str, now: Optional[float] = None) -> bool:
    current = time.time() if now is None else now
    if expires < current:
        return False
    return hmac.compare_digest(sign_object_key(key, expires), signature)
