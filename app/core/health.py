from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.settings import settings
from app.db.session import engine
from app.utils.redis_client import get_redis_client

APP_VERSION = "0.1.0"

# Redis only backs the PIN lockout counters, which fail open.
_REQUIRED_CHECKS = ("database", "storage")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _check_db() -> dict[str, str]:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        return {"status": "error", "error": exc.__class__.__name__}
    return {"status": "ok"}


async def _check_redis() -> dict[str, str]:
    try:
        await get_redis_client().ping()
    except (RedisError, OSError) as exc:
        return {"status": "error", "error": exc.__class__.__name__}
    return {"status": "ok"}


def _check_storage() -> dict[str, str]:
    upload_dir = Path(settings.local_upload_dir)
    try:
        upload_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return {"status": "error", "error": exc.__class__.__name__}
    if not upload_dir.is_dir():
        return {"status": "error", "error": "not_a_directory"}
    return {"status": "ok"}


async def _collect_checks() -> dict[str, dict[str, str]]:
    return {
        "api": {"status": "ok", "version": APP_VERSION},
        "database": await _check_db(),
        "storage": _check_storage(),
        "redis": await _check_redis(),
    }


def _overall_status(checks: dict[str, dict[str, Any]]) -> tuple[str, bool]:
    ready = all(checks[name].get("status") == "ok" for name in _REQUIRED_CHECKS)
    healthy = ready and all(check.get("status") == "ok" for check in checks.values())
    return ("ok" if healthy else "degraded", ready)


async def live_payload() -> dict[str, str]:
    return {"status": "ok", "timestamp": _now()}


async def ready_payload() -> dict[str, Any]:
    checks = await _collect_checks()
    overall, ready = _overall_status(checks)
    return {
        "status": overall,
        "ready": ready,
        "environment": settings.environment,
        "timestamp": _now(),
        "checks": checks,
    }


async def status_summary_payload() -> dict[str, Any]:
    payload = await ready_payload()
    payload["version"] = APP_VERSION
    return payload
