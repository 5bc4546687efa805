from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.settings import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[f"{settings.rate_limit_per_minute}/minute"],
    storage_uri=settings.rate_limit_storage_uri,
)


def share_rate_limit() -> str:
    return f"{settings.share_rate_limit_per_minute}/minute"


__all__ = ["limiter", "share_rate_limit"]
