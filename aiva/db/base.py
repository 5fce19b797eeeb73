# aiva/db/base.py
from datetime import datetime, timezone
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps returned by drivers without tz support."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def load_all_models():
    # Import models ONLY for side-effect registration
    import aiva.db.models.tenant  # noqa
    import aiva.db.models.profile  # noqa
    import aiva.db.models.folder  # noqa
    import aiva.db.models.asset  # noqa
    import aiva.db.models.analytics_event  # noqa
    import aiva.db.models.verification_result  # noqa
