from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.asset import Asset
from app.models.user import User
from app.schemas.admin import AdminStats, RecentUpload, TypeCount
from app.services.access_control import AccessControlEngine, Principal

RECENT_UPLOADS_LIMIT = 5


async def collect_stats(db: AsyncSession, engine: AccessControlEngine, principal: Principal) -> AdminStats:
    engine.require_admin(principal)

    total_users = (await db.execute(select(func.count(User.id)))).scalar_one()
    total_assets = (await db.execute(select(func.count(Asset.id)))).scalar_one()
    total_storage = (
        await db.execute(select(func.coalesce(func.sum(Asset.size_bytes), 0)))
    ).scalar_one()

    type_rows = await db.execute(
        select(Asset.asset_type, func.count(Asset.id)).group_by(Asset.asset_type).order_by(Asset.asset_type)
    )
    type_distribution = [TypeCount(type=row[0], count=row[1]) for row in type_rows.all()]

    recent_stmt = (
        select(Asset, User.name, User.email)
        .outerjoin(User, User.id == Asset.owner_id)
        .order_by(Asset.uploaded_at.desc(), Asset.id.desc())
        .limit(RECENT_UPLOADS_LIMIT)
    )
    recent_rows = await db.execute(recent_stmt)
    recent_uploads = [
        RecentUpload(
            id=asset.id,
            name=asset.name,
            type=asset.asset_type,
            size=asset.size_label,
            uploaded_at=asset.uploaded_at,
            owner_id=asset.owner_id,
            owner_name=owner_name,
            owner_email=owner_email,
        )
        for asset, owner_name, owner_email in recent_rows.all()
    ]

    return AdminStats(
        total_users=total_users,
        total_assets=total_assets,
        total_storage=int(total_storage or 0),
        type_distribution=type_distribution,
        recent_uploads=recent_uploads,
    )
