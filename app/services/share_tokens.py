from __future__ import annotations

import logging
import secrets
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.asset import Asset, Visibility

logger = logging.getLogger(__name__)


class ShareTokenExhaustedError(RuntimeError):
    pass


def generate_share_token(num_bytes: int = 16) -> str:
    return secrets.token_hex(num_bytes)


async def _current_token(db: AsyncSession, asset_id: UUID) -> str | None:
    result = await db.execute(select(Asset.id, Asset.share_token).where(Asset.id == asset_id))
    row = result.first()
    if row is None:
        raise NotFoundError("Asset not found")
    return row[1]


async def assign_share_token(
    db: AsyncSession,
    asset_id: UUID,
    *,
    num_bytes: int = 16,
    max_attempts: int = 5,
) -> str:
    """Give the asset a share token unless it already has one.

    The token is written with a conditional UPDATE guarded by
    ``share_token IS NULL``, so concurrent callers on the same asset all end up
    with whichever token landed first. A unique-constraint violation means the
    random token collided with another asset's; a fresh one is drawn.
    """
    existing = await _current_token(db, asset_id)
    if existing:
        return existing

    for attempt in range(1, max_attempts + 1):
        token = generate_share_token(num_bytes)
        stmt = (
            update(Asset)
            .where(Asset.id == asset_id, Asset.share_token.is_(None))
            .values(share_token=token, visibility=Visibility.SHARED)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await db.execute(stmt)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning("Share token collision", extra={"event": {"asset_id": str(asset_id), "attempt": attempt}})
            continue

        if result.rowcount == 1:
            return token

        winner = await _current_token(db, asset_id)
        if winner:
            return winner
        # Revoked between our read and write; try again with a fresh token.

    raise ShareTokenExhaustedError(f"Could not assign a unique share token after {max_attempts} attempts")


async def clear_share_token(db: AsyncSession, asset_id: UUID) -> None:
    stmt = (
        update(Asset)
        .where(Asset.id == asset_id)
        .values(share_token=None, visibility=Visibility.PRIVATE)
        .execution_options(synchronize_session=False)
    )
    await db.execute(stmt)
    await db.commit()
