"""Authorization decisions for asset operations.

Every asset-touching request is routed through :class:`AccessControlEngine`.
The engine is pure: it inspects the principal, the asset and an optional PIN
and either returns an :class:`AccessDecision` describing what the caller may
see and which counters to bump, or raises one of the domain errors from
``app.core.errors``. Persistence of side effects is left to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from app.core.errors import (
    AuthenticationError,
    AuthorizationError,
    DenialReason,
    NotFoundError,
)
from app.models.asset import Asset, Visibility
from app.models.user import User, UserRole
from app.services.pins import PinHasher, PinPolicy
from app.services.role_policy import RolePolicy


class AssetOperation(str, Enum):
    VIEW_METADATA = "view-metadata"
    FETCH_URL = "fetch-url"
    DOWNLOAD = "download"
    DELETE = "delete"
    GENERATE_SHARE = "generate-share"
    REVOKE_SHARE = "revoke-share"
    VERIFY_PIN = "verify-pin"
    ROTATE_PIN = "rotate-pin"
    SHARE_ACCESS = "share-access"


# Owner operations that need the asset PIN when one is set.
_PIN_GATED_OWNER_OPS = {AssetOperation.DELETE, AssetOperation.ROTATE_PIN, AssetOperation.VERIFY_PIN}
_SHARE_LINK_OPS = {AssetOperation.FETCH_URL, AssetOperation.SHARE_ACCESS, AssetOperation.DOWNLOAD}


@dataclass(frozen=True, slots=True)
class Principal:
    user_id: UUID | None = None
    role: UserRole | None = None

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls()

    @classmethod
    def for_user(cls, user: User) -> "Principal":
        return cls(user_id=user.id, role=user.role)

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def owns(self, asset: Asset) -> bool:
        return self.user_id is not None and asset.owner_id == self.user_id


@dataclass(frozen=True, slots=True)
class AccessDecision:
    include_url: bool = False
    count_view: bool = False
    count_download: bool = False
    is_protected: bool = False


@dataclass(frozen=True, slots=True)
class AccessPolicy:
    pin: PinPolicy = field(default_factory=PinPolicy)
    roles: RolePolicy = field(default_factory=RolePolicy)
    share_token_bytes: int = 16
    share_token_max_attempts: int = 5

    @classmethod
    def from_settings(cls, settings) -> "AccessPolicy":
        return cls(
            pin=PinPolicy(
                min_length=settings.pin_min_length,
                max_length=settings.pin_max_length,
                hash_rounds=settings.pin_hash_rounds,
            ),
            roles=RolePolicy.from_emails(settings.admin_emails),
            share_token_bytes=settings.share_token_bytes,
            share_token_max_attempts=settings.share_token_max_attempts,
        )


class AccessControlEngine:
    def __init__(self, policy: AccessPolicy | None = None) -> None:
        self.policy = policy or AccessPolicy()
        self.pins = PinHasher(self.policy.pin)

    def role_for_new_account(self, email: str) -> UserRole:
        return self.policy.roles.role_for(email)

    def require_admin(self, principal: Principal) -> None:
        if principal.is_anonymous:
            raise AuthenticationError()
        if not principal.is_admin:
            raise AuthorizationError(DenialReason.ROLE_INSUFFICIENT)

    def authorize(
        self,
        principal: Principal,
        asset: Asset | None,
        operation: AssetOperation,
        *,
        pin: str | None = None,
        via_share_token: bool = False,
    ) -> AccessDecision:
        if asset is None:
            raise NotFoundError("Asset not found")
        if via_share_token:
            return self._authorize_share_link(asset, operation, pin)
        return self._authorize_direct(principal, asset, operation, pin)

    def _authorize_share_link(
        self, asset: Asset, operation: AssetOperation, pin: str | None
    ) -> AccessDecision:
        if operation not in _SHARE_LINK_OPS:
            raise ValueError(f"{operation.value} is not available through a share link")
        # A revoked or never-shared asset is indistinguishable from a missing one.
        if asset.visibility != Visibility.SHARED or not asset.share_token:
            raise NotFoundError("Asset not found")

        if operation == AssetOperation.FETCH_URL:
            if asset.has_pin:
                return AccessDecision(is_protected=True)
            return AccessDecision(include_url=True, count_view=True)

        self.pins.require_pin(pin, asset.pin_hash)
        if operation == AssetOperation.DOWNLOAD:
            return AccessDecision(include_url=True, count_download=True, is_protected=asset.has_pin)
        return AccessDecision(include_url=True, count_view=True, is_protected=asset.has_pin)

    def _authorize_direct(
        self, principal: Principal, asset: Asset, operation: AssetOperation, pin: str | None
    ) -> AccessDecision:
        if principal.is_anonymous:
            raise AuthenticationError()
        if operation == AssetOperation.SHARE_ACCESS:
            raise ValueError("share-access requires a share token")

        if not principal.owns(asset):
            # Non-owners may only run the PIN pre-flight, and only on assets they
            # could otherwise reach (shared) or as admins. Anything else looks
            # exactly like a missing asset.
            reachable = principal.is_admin or asset.visibility == Visibility.SHARED
            if operation != AssetOperation.VERIFY_PIN or not reachable:
                raise NotFoundError("Asset not found")

        if operation in _PIN_GATED_OWNER_OPS:
            self.pins.require_pin(pin, asset.pin_hash)
            return AccessDecision(is_protected=asset.has_pin)

        if operation in {AssetOperation.VIEW_METADATA, AssetOperation.FETCH_URL, AssetOperation.DOWNLOAD}:
            return AccessDecision(include_url=True, is_protected=asset.has_pin)

        return AccessDecision(is_protected=asset.has_pin)
