import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, BigInteger, Column, DateTime, Enum as SAEnum, ForeignKey, Integer, String, Uuid

from app.db.base import Base


class AssetType(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"


class Visibility(str, Enum):
    PRIVATE = "private"
    SHARED = "shared"
    # Reserved: accepted at creation, served like PRIVATE by every access path.
    PUBLIC = "public"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Asset(Base):
    __tablename__ = "assets"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    name = Column(String(255), nullable=False)
    asset_type = Column(
        SAEnum(AssetType, name="asset_type", native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
    )
    size_label = Column(String(32), nullable=False)  # human readable, e.g. "2.4 MB"
    size_bytes = Column(BigInteger, nullable=False, default=0)
    tags = Column(JSON, nullable=False, default=list)

    object_key = Column(String, nullable=False)  # location under the upload root
    content_type = Column(String(255), nullable=True)

    visibility = Column(
        SAEnum(Visibility, name="asset_visibility", native_enum=False, length=16, values_callable=_enum_values),
        nullable=False,
        default=Visibility.PRIVATE,
    )
    pin_hash = Column(String(255), nullable=True)
    share_token = Column(String(128), nullable=True, unique=True)

    views = Column(Integer, nullable=False, default=0, server_default="0")
    downloads = Column(Integer, nullable=False, default=0, server_default="0")

    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    @property
    def has_pin(self) -> bool:
        return self.pin_hash is not None
