from app.models.asset import Asset, AssetType, Visibility
from app.models.user import User, UserRole

__all__ = [
    "Asset",
    "AssetType",
    "User",
    "UserRole",
    "Visibility",
]
