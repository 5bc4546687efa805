from uuid import UUID

from redis.exceptions import RedisError

from app.core.errors import PinLockedError
from app.core.settings import settings
from app.utils.redis_client import get_redis_client

# Counter scope shared by every anonymous share-link visitor.
SHARE_LINK_SCOPE = "link"


def _ttl(seconds: int) -> int:
    return max(1, seconds)


def _keys(asset_id: UUID, scope: str) -> tuple[str, str]:
    return f"pin_fail:{asset_id}:{scope}", f"pin_lock:{asset_id}:{scope}"


async def check_pin_lockout(asset_id: UUID, scope: str) -> None:
    redis = get_redis_client()
    _, lock_key = _keys(asset_id, scope)
    try:
        locked = await redis.get(lock_key)
    except RedisError:
        return
    if locked:
        raise PinLockedError()


async def register_pin_attempt(asset_id: UUID, scope: str, success: bool) -> None:
    redis = get_redis_client()
    fail_key, lock_key = _keys(asset_id, scope)
    window = _ttl(settings.pin_lockout_minutes * 60)
    try:
        if success:
            await redis.delete(fail_key)
            return
        attempts = await redis.incr(fail_key)
        await redis.expire(fail_key, window)
        if attempts >= settings.pin_attempt_limit:
            await redis.setex(lock_key, window, 1)
            await redis.delete(fail_key)
    except RedisError:
        return


async def clear_pin_attempts(asset_id: UUID, *scopes: str) -> None:
    redis = get_redis_client()
    keys = [key for scope in scopes for key in _keys(asset_id, scope)]
    try:
        await redis.delete(*keys)
    except RedisError:
        return
