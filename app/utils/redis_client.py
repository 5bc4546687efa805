from functools import lru_cache

from redis.asyncio import Redis

from app.core.settings import settings

# Lockout checks fail open, so a dead Redis must not stall PIN requests.
_SOCKET_TIMEOUT_SECONDS = 1.0


@lru_cache(maxsize=1)
def get_redis_client() -> Redis:
    return Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=_SOCKET_TIMEOUT_SECONDS,
        socket_connect_timeout=_SOCKET_TIMEOUT_SECONDS,
    )


async def close_redis_client() -> None:
    if get_redis_client.cache_info().currsize:
        await get_redis_client().aclose()
        get_redis_client.cache_clear()
