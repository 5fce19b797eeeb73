import time
import uuid
from fastapi import Depends
from aiva.core.auth import CurrentUser, get_current_user
from aiva.core.config import settings
from aiva.core.exceptions import RateLimitExceededError
from aiva.db.cache import redis_client


async def sliding_window_rate_limit(
    tenant_id: str,
    action: str,
    max_requests: int,
    window_seconds: int,
    client=None,
):
    """
    Sliding window rate limiting algorithm using Redis sorted sets (ZSET).
    Tracks timestamps of each request in a window.
    """
    client = client or redis_client

    key = f"rate_limit:{tenant_id}:{action}"
    current_time = time.time()
    window_start = current_time - window_seconds

    pipe = client.pipeline()
    pipe.zremrangebyscore(key, 0, window_start)  # Remove outdated requests
    pipe.zadd(key, {f"{current_time}:{uuid.uuid4().hex[:8]}": current_time})  # Add current request
    pipe.zcard(key)  # Count requests in window
    pipe.expire(key, window_seconds + 10)  # Set key expiry
    _, _, current_count, _ = await pipe.execute()

    if current_count > max_requests:
        raise RateLimitExceededError(f"Rate limit exceeded for {action}. Try again later.")


def rate_limit_dependency(
    action: str,
    max_requests: int,
    window_seconds: int = 60
):
    async def dependency(user: CurrentUser = Depends(get_current_user)):
        if not settings.RATE_LIMIT_ENABLED:
            return
        await sliding_window_rate_limit(user.tenant_id, action, max_requests, window_seconds)

    return dependency
