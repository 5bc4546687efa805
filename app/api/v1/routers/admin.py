from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models import User
from app.schemas.admin import AdminStats, UserDeleteResponse
from app.schemas.auth import UserOut
from app.services.access_control import AccessControlEngine, Principal
from app.services.stats import collect_stats
from app.services.users import UserService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stats", response_model=AdminStats)
async def read_stats(
    admin: User = Depends(deps.require_admin),
    db: AsyncSession = Depends(deps.get_db_session),
    engine: AccessControlEngine = Depends(deps.get_access_engine),
) -> AdminStats:
    return await collect_stats(db, engine, Principal.for_user(admin))


@router.get("/users", response_model=list[UserOut])
async def list_users(
    admin: User = Depends(deps.require_admin),
    service: UserService = Depends(deps.get_user_service),
) -> list[UserOut]:
    users = await service.list_users(Principal.for_user(admin))
    return [UserOut.model_validate(user) for user in users]


@router.delete("/users/{user_id}", response_model=UserDeleteResponse)
async def delete_user(
    user_id: UUID,
    admin: User = Depends(deps.require_admin),
    service: UserService = Depends(deps.get_user_service),
) -> UserDeleteResponse:
    removed = await service.delete_user(Principal.for_user(admin), user_id)
    return UserDeleteResponse(id=user_id, assets_deleted=removed)
