from __future__ import annotations

import logging
from pathlib import Path
from uuid import UUID

from fastapi import UploadFile
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AuthorizationError, DenialReason, NotFoundError, ValidationError
from app.models.asset import Asset, Visibility
from app.models.user import User
from app.schemas.assets import AssetRead, AssetUploadForm
from app.schemas.share import SharedAssetRead
from app.services import asset_store, share_tokens
from app.services.access_control import (
    AccessControlEngine,
    AccessDecision,
    AssetOperation,
    Principal,
)
from app.services.audit import record_audit_event
from app.services.local_uploads import format_size, owner_subdir, save_upload
from app.services.storage.adapter import LocalFileSystemAdapter, StorageAdapter
from app.utils.pin_attempts import (
    SHARE_LINK_SCOPE,
    check_pin_lockout,
    clear_pin_attempts,
    register_pin_attempt,
)

logger = logging.getLogger(__name__)


def _lockout_scope(principal: Principal, via_share_token: bool) -> str:
    # Link visitors share one counter; signed-in callers only lock themselves out.
    if via_share_token or principal.is_anonymous:
        return SHARE_LINK_SCOPE
    return str(principal.user_id)


class AssetService:
    def __init__(
        self,
        db: AsyncSession,
        engine: AccessControlEngine,
        storage: StorageAdapter,
        *,
        url_expiry_seconds: int = 3600,
        max_upload_bytes: int = 0,
    ) -> None:
        self.db = db
        self.engine = engine
        self.storage = storage
        self.url_expiry_seconds = url_expiry_seconds
        self.max_upload_bytes = max_upload_bytes

    # -- helpers --

    def url_for(self, asset: Asset, *, download: bool = False) -> str:
        return self.storage.generate_download_url(
            asset.object_key, expires_in=self.url_expiry_seconds, download=download
        )

    def to_owner_view(self, asset: Asset) -> AssetRead:
        return AssetRead(
            id=asset.id,
            name=asset.name,
            type=asset.asset_type,
            size=asset.size_label,
            size_bytes=asset.size_bytes,
            uploaded_at=asset.uploaded_at,
            tags=list(asset.tags or []),
            url=self.url_for(asset),
            visibility=asset.visibility,
            has_pin=asset.has_pin,
            share_token=asset.share_token,
            views=asset.views,
            downloads=asset.downloads,
        )

    async def _authorize(
        self,
        principal: Principal,
        asset: Asset | None,
        operation: AssetOperation,
        *,
        pin: str | None = None,
        via_share_token: bool = False,
    ) -> AccessDecision:
        """Run the engine, adding the failed-PIN lockout around PIN checks."""
        pin_supplied = self.engine.pins.normalize(pin) is not None
        guarded = asset is not None and asset.has_pin and pin_supplied
        scope = _lockout_scope(principal, via_share_token)
        if guarded:
            await check_pin_lockout(asset.id, scope)
        try:
            decision = self.engine.authorize(
                principal, asset, operation, pin=pin, via_share_token=via_share_token
            )
        except AuthorizationError as exc:
            if exc.reason == DenialReason.PIN_INVALID:
                await register_pin_attempt(asset.id, scope, success=False)
                record_audit_event(
                    actor_id=principal.user_id,
                    action="asset.pin_failed",
                    resource_type="asset",
                    resource_id=asset.id,
                    operation=operation.value,
                )
            raise
        if guarded:
            await register_pin_attempt(asset.id, scope, success=True)
        return decision

    async def _load_for(self, principal: Principal, asset_id: UUID, operation: AssetOperation, pin=None):
        asset = await asset_store.get_asset(self.db, asset_id)
        decision = await self._authorize(principal, asset, operation, pin=pin)
        return asset, decision

    # -- owner operations --

    async def create_asset(self, owner: User, file: UploadFile, form: AssetUploadForm) -> Asset:
        pin = self.engine.pins.normalize(form.pin)
        if pin is not None and form.visibility == Visibility.PUBLIC:
            raise ValidationError("A PIN can only protect private or shared assets", code="pin_not_applicable")
        # Hash before touching storage so a bad PIN never leaves a stray file.
        pin_hash = self.engine.pins.hash_pin(pin) if pin is not None else None

        if not isinstance(self.storage, LocalFileSystemAdapter):
            raise RuntimeError("Uploads require a local storage adapter")
        object_key, original_name, size_bytes = await save_upload(
            file,
            base_dir=Path(self.storage.base_path),
            subdir=owner_subdir(owner.id),
            max_size_bytes=self.max_upload_bytes,
        )

        asset = Asset(
            owner_id=owner.id,
            name=form.name or original_name,
            asset_type=form.type,
            size_label=form.size or format_size(size_bytes),
            size_bytes=size_bytes,
            tags=form.tags,
            object_key=object_key,
            content_type=file.content_type,
            # Shared assets start private and flip once their token is in place.
            visibility=Visibility.PRIVATE if form.visibility == Visibility.SHARED else form.visibility,
            pin_hash=pin_hash,
            views=0,
            downloads=0,
        )
        self.db.add(asset)
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            self.storage.delete_object(object_key)
            raise
        await self.db.refresh(asset)

        if form.visibility == Visibility.SHARED:
            await share_tokens.assign_share_token(
                self.db,
                asset.id,
                num_bytes=self.engine.policy.share_token_bytes,
                max_attempts=self.engine.policy.share_token_max_attempts,
            )
            await self.db.refresh(asset)

        record_audit_event(
            actor_id=owner.id,
            action="asset.uploaded",
            resource_type="asset",
            resource_id=asset.id,
            visibility=asset.visibility.value,
            has_pin=asset.has_pin,
        )
        return asset

    async def list_owned(self, principal: Principal) -> list[Asset]:
        return await asset_store.list_assets_for_owner(self.db, principal.user_id)

    async def get_owned(self, principal: Principal, asset_id: UUID) -> Asset:
        asset, _ = await self._load_for(principal, asset_id, AssetOperation.VIEW_METADATA)
        return asset

    async def delete_asset(self, principal: Principal, asset_id: UUID, *, pin: str | None) -> None:
        asset, _ = await self._load_for(principal, asset_id, AssetOperation.DELETE, pin=pin)
        object_key = asset.object_key
        await self.db.delete(asset)
        await self.db.commit()
        self.storage.delete_object(object_key)
        await clear_pin_attempts(asset_id, SHARE_LINK_SCOPE, _lockout_scope(principal, False))
        record_audit_event(
            actor_id=principal.user_id,
            action="asset.deleted",
            resource_type="asset",
            resource_id=asset_id,
        )

    async def generate_share(self, principal: Principal, asset_id: UUID) -> str:
        asset, _ = await self._load_for(principal, asset_id, AssetOperation.GENERATE_SHARE)
        token = await share_tokens.assign_share_token(
            self.db,
            asset.id,
            num_bytes=self.engine.policy.share_token_bytes,
            max_attempts=self.engine.policy.share_token_max_attempts,
        )
        record_audit_event(
            actor_id=principal.user_id,
            action="asset.share_generated",
            resource_type="asset",
            resource_id=asset_id,
        )
        return token

    async def revoke_share(self, principal: Principal, asset_id: UUID) -> Asset:
        asset, _ = await self._load_for(principal, asset_id, AssetOperation.REVOKE_SHARE)
        if asset.share_token is not None:
            await share_tokens.clear_share_token(self.db, asset.id)
            record_audit_event(
                actor_id=principal.user_id,
                action="asset.share_revoked",
                resource_type="asset",
                resource_id=asset_id,
            )
        await self.db.refresh(asset)
        return asset

    async def verify_pin(self, principal: Principal, asset_id: UUID, pin: str | None) -> None:
        await self._load_for(principal, asset_id, AssetOperation.VERIFY_PIN, pin=pin)

    async def rotate_pin(
        self,
        principal: Principal,
        asset_id: UUID,
        *,
        current_pin: str | None,
        new_pin: str | None,
    ) -> Asset:
        """Rotate the PIN, or clear it when ``new_pin`` is empty."""
        asset, _ = await self._load_for(principal, asset_id, AssetOperation.ROTATE_PIN, pin=current_pin)
        replacement = self.engine.pins.normalize(new_pin)
        if replacement is not None and asset.visibility == Visibility.PUBLIC:
            raise ValidationError("A PIN can only protect private or shared assets", code="pin_not_applicable")
        asset.pin_hash = self.engine.pins.hash_pin(replacement) if replacement is not None else None
        self.db.add(asset)
        await self.db.commit()
        await self.db.refresh(asset)
        await clear_pin_attempts(asset_id, SHARE_LINK_SCOPE, _lockout_scope(principal, False))
        record_audit_event(
            actor_id=principal.user_id,
            action="asset.pin_rotated" if replacement is not None else "asset.pin_cleared",
            resource_type="asset",
            resource_id=asset_id,
        )
        return asset

    async def clear_pin(self, principal: Principal, asset_id: UUID, *, current_pin: str | None) -> Asset:
        return await self.rotate_pin(principal, asset_id, current_pin=current_pin, new_pin=None)

    # -- share link operations (anonymous) --

    async def _owner_name(self, owner_id: UUID) -> str:
        result = await self.db.execute(select(User.name).where(User.id == owner_id))
        return result.scalar_one_or_none() or "Unknown"

    async def get_shared(self, token: str) -> SharedAssetRead:
        asset = await asset_store.get_asset_by_share_token(self.db, token)
        decision = await self._authorize(
            Principal.anonymous(), asset, AssetOperation.FETCH_URL, via_share_token=True
        )
        payload = SharedAssetRead(
            id=asset.id,
            name=asset.name,
            type=asset.asset_type,
            size=asset.size_label,
            owner_name=await self._owner_name(asset.owner_id),
            uploaded_at=asset.uploaded_at,
            is_protected=decision.is_protected,
            url=self.url_for(asset) if decision.include_url else None,
        )
        if decision.count_view:
            await asset_store.increment_counter(self.db, asset.id, "views")
        return payload

    async def access_shared(self, token: str, pin: str | None, *, download: bool = False) -> str:
        asset = await asset_store.get_asset_by_share_token(self.db, token)
        operation = AssetOperation.DOWNLOAD if download else AssetOperation.SHARE_ACCESS
        decision = await self._authorize(
            Principal.anonymous(), asset, operation, pin=pin, via_share_token=True
        )
        if decision.count_view:
            await asset_store.increment_counter(self.db, asset.id, "views")
        if decision.count_download:
            await asset_store.increment_counter(self.db, asset.id, "downloads")
        return self.url_for(asset, download=download)
