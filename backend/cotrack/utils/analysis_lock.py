"""Per-session team analysis lock stored in Redis.

The cron job in the worker and the manual ``/api/team-analysis/{code}/analyze``
endpoint both run the same analysis. A short-lived ``SET NX EX`` key keeps them
from analyzing one session at the same time. The lock expires on its own if
the holder dies before releasing it.

Each holder stores a random token in the key and only deletes the key while it
still holds that token, so a run that outlives the TTL cannot release a lock
taken by a later run.
"""
import secrets
from contextlib import asynccontextmanager
from typing import Optional

import redis.asyncio as redis

from cotrack.config import settings
from cotrack.utils.logger import logger

# Delete the key only if it still holds the caller's token
RELEASE_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


@asynccontextmanager
async def get_redis_client():
    """Get async Redis client with proper cleanup."""
    client = redis.from_url(settings.redis_url, decode_responses=True)
    try:
        yield client
    finally:
        await client.aclose()


def _analysis_lock_key(session_code: str) -> str:
    """Generate Redis key for the team analysis lock."""
    return f"team_analysis_lock:{session_code}"


async def acquire_analysis_lock(session_code: str, ttl_seconds: int = None) -> Optional[str]:
    """
    Acquire the analysis lock for a session.

    Args:
        session_code: Session code being analyzed
        ttl_seconds: Lock TTL in seconds (defaults to ANALYSIS_LOCK_TTL_SECONDS)

    Returns:
        The holder token, or None if already locked or Redis is unreachable
    """
    ttl = ttl_seconds or settings.analysis_lock_ttl_seconds
    token = secrets.token_hex(16)
    try:
        async with get_redis_client() as client:
            result = await client.set(_analysis_lock_key(session_code), token, ex=ttl, nx=True)
            return token if result is True else None
    except Exception as e:
        logger.error(f"Failed to acquire analysis lock for {session_code}: {e}", exc_info=True)
        return None


async def release_analysis_lock(session_code: str, token: str) -> bool:
    """
    Release the analysis lock for a session if ``token`` still holds it.

    Returns:
        True if the lock was released, False if it had expired, was taken by
        another holder, or Redis failed
    """
    try:
        async with get_redis_client() as client:
            released = await client.eval(RELEASE_SCRIPT, 1, _analysis_lock_key(session_code), token)
    except Exception as e:
        logger.error(f"Failed to release analysis lock for {session_code}: {e}", exc_info=True)
        return False
    if not released:
        logger.warning(f"Analysis lock for {session_code} expired or is held by another run, not released")
    return bool(released)
