from uuid import UUID
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.asset import AssetType, Visibility


class AssetRead(BaseModel):
    """Owner's view of an asset. The PIN hash is never part of it."""

    id: UUID
    name: str
    type: AssetType
    size: str
    size_bytes: int
    uploaded_at: datetime
    tags: list[str] = Field(default_factory=list)
    url: Optional[str] = None
    visibility: Visibility
    has_pin: bool
    share_token: Optional[str] = None
    views: int = 0
    downloads: int = 0


class ShareTokenResponse(BaseModel):
    share_token: str


class PinVerifyRequest(BaseModel):
    pin: Optional[str] = None


class PinVerifyResponse(BaseModel):
    success: bool = True


class PinUpdateRequest(BaseModel):
    current_pin: Optional[str] = None
    new_pin: Optional[str] = Field(default=None, description="Omit or null to remove the PIN")


class AssetDeleteResponse(BaseModel):
    deleted: bool = True
    id: UUID


class AssetUploadForm(BaseModel):
    """Validated form fields accompanying an upload."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, max_length=255)
    type: AssetType
    size: Optional[str] = Field(default=None, max_length=32)
    tags: list[str] = Field(default_factory=list)
    visibility: Visibility = Visibility.PRIVATE
    pin: Optional[str] = None
