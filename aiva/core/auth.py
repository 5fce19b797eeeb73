from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Header
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from aiva.core.exceptions import AuthenticationError, ProfileNotFoundError
from aiva.core.security import verify_access_token
from aiva.db.sessions import get_db
from aiva.db.models.profile import Profile


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    tenant_id: str


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """
    Resolve the caller from the bearer session token and load the tenant
    bound to their profile.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Not authenticated")

    payload = verify_access_token(token=authorization[len("Bearer "):].strip())
    if not payload or not payload.get("sub"):
        raise AuthenticationError("Session expired or invalid")

    result = await db.execute(select(Profile).where(Profile.id == payload["sub"]))
    profile = result.scalar_one_or_none()

    if not profile or not profile.tenant_id:
        raise ProfileNotFoundError("Profile or tenant not found")

    return CurrentUser(user_id=profile.id, tenant_id=profile.tenant_id)
