# adslots/redis_client.py
"""
Shared Redis connection.

Used for:
- availability cache (keyed store with TTL and explicit delete)
- event queue for the mail sender (events:p2p)
- single-flight lock of the waitlist sweep
"""

from redis import Redis

from .config import settings

redis_client = Redis.from_url(settings.redis_url, decode_responses=True)


def get_redis() -> Redis:
    """FastAPI dependency, overridable in tests."""
    return redis_client
