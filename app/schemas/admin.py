from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from app.models.asset import AssetType


class TypeCount(BaseModel):
    type: AssetType
    count: int


class RecentUpload(BaseModel):
    id: UUID
    name: str
    type: AssetType
    size: str
    uploaded_at: datetime
    owner_id: UUID
    owner_name: Optional[str] = None
    owner_email: Optional[str] = None


class AdminStats(BaseModel):
    total_users: int
    total_assets: int
    total_storage: int
    type_distribution: list[TypeCount]
    recent_uploads: list[RecentUpload]


class UserDeleteResponse(BaseModel):
    deleted: bool = True
    id: UUID
    assets_deleted: int
