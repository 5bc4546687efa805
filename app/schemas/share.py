from uuid import UUID
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from app.models.asset import AssetType


class SharedAssetRead(BaseModel):
    """What an anonymous visitor learns from a share link.

    ``url`` is only present when the asset is not PIN protected.
    """

    id: UUID
    name: str
    type: AssetType
    size: str
    owner_name: str
    uploaded_at: datetime
    is_protected: bool
    url: Optional[str] = None


class ShareAccessRequest(BaseModel):
    token: str
    pin: Optional[str] = None


class ShareAccessResponse(BaseModel):
    url: str
