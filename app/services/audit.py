from __future__ import annotations

from datetime import date, datetime
from typing import Any
from uuid import UUID

from fastapi.encoders import jsonable_encoder

from app.core.logging import get_audit_logger

audit_logger = get_audit_logger()


def serialize_for_audit(value: Any) -> Any:
    return jsonable_encoder(
        value,
        custom_encoder={
            UUID: lambda v: str(v),
            datetime: lambda v: v.isoformat(),
            date: lambda v: v.isoformat(),
        },
    )


def record_audit_event(
    *,
    actor_id: UUID | None,
    action: str,
    resource_type: str,
    resource_id: Any,
    **details: Any,
) -> None:
    """Write one security-relevant event to the audit stream.

    ``details`` must not contain secrets; PIN and password keys are dropped by
    the formatter regardless.
    """
    event = {
        "actor_id": str(actor_id) if actor_id else "anonymous",
        "action": action,
        "resource_type": resource_type,
        "resource_id": str(resource_id),
    }
    event.update(serialize_for_audit(details))
    audit_logger.info(action, extra={"event": event})
