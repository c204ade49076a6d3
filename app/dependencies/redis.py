import logging

from upstash_redis.asyncio import Redis

from app.config import get_settings

logger = logging.getLogger(__name__)

# Holds the per-game submission locks
_redis_client: Redis | None = None


def get_redis_client() -> Redis:
    """Get the singleton async Upstash Redis client, creating it on first use."""
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        _redis_client = Redis(
            url=settings.UPSTASH_REDIS_REST_URL,
            token=settings.UPSTASH_REDIS_REST_TOKEN,
        )
        logger.info("Upstash Redis client initialized: %s", settings.UPSTASH_REDIS_REST_URL)
    return _redis_client


async def close_redis_client() -> None:
    global _redis_client
    if _redis_client is None:
        return
    await _redis_client.close()
    _redis_client = None
    logger.info("Upstash Redis client closed")
