from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.asset import Asset


async def get_asset(db: AsyncSession, asset_id: UUID) -> Asset | None:
    return await db.get(Asset, asset_id)


async def get_asset_by_share_token(db: AsyncSession, token: str) -> Asset | None:
    if not token:
        return None
    stmt = select(Asset).where(Asset.share_token == token)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def list_assets_for_owner(db: AsyncSession, owner_id: UUID) -> list[Asset]:
    stmt = (
        select(Asset)
        .where(Asset.owner_id == owner_id)
        .order_by(Asset.uploaded_at.desc(), Asset.id.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def increment_counter(db: AsyncSession, asset_id: UUID, column: str) -> None:
    """Atomically bump ``views`` or ``downloads`` in a single UPDATE."""
    if column not in {"views", "downloads"}:
        raise ValueError(f"Unknown counter: {column}")
    counter = getattr(Asset, column)
    stmt = (
        update(Asset)
        .where(Asset.id == asset_id)
        .values({column: counter + 1})
        .execution_options(synchronize_session=False)
    )
    await db.execute(stmt)
    await db.commit()


async def delete_assets_for_owner(db: AsyncSession, owner_id: UUID) -> None:
    stmt = (
        delete(Asset)
        .where(Asset.owner_id == owner_id)
        .execution_options(synchronize_session=False)
    )
    await db.execute(stmt)
