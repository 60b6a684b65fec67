from redis.asyncio import Redis
from triviaquest.core.config import settings

_redis: Redis | None = None


async def get_redis() -> Redis:
    """
    Returns the shared Redis client. Supports TLS via the rediss:// scheme
    and is tuned for managed providers (Upstash, Redis Cloud).
    """
    global _redis
    if _redis is None:
        if not settings.REDIS_URL:
            raise RuntimeError("REDIS_URL is not configured")
        _redis = Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            health_check_interval=30,
            socket_timeout=3,
            socket_connect_timeout=3,
            retry_on_timeout=True,
            max_connections=50,
        )
        # fail fast if the server is unreachable
        await _redis.ping()
    return _redis


async def close_redis():
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None
