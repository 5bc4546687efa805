from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Header, Query, UploadFile
from fastapi.responses import FileResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.errors import NotFoundError, ValidationError
from app.models import Asset, AssetType, User, Visibility
from app.schemas.assets import (
    AssetDeleteResponse,
    AssetRead,
    AssetUploadForm,
    PinUpdateRequest,
    PinVerifyRequest,
    PinVerifyResponse,
    ShareTokenResponse,
)
from app.schemas.common import parse_tags
from app.services.access_control import Principal
from app.services.assets import AssetService
from app.services.storage.adapter import LocalFileSystemAdapter, StorageAdapter

router = APIRouter(prefix="/assets", tags=["assets"])


@router.post("/upload", response_model=AssetRead)
async def upload_asset(
    file: UploadFile = File(...),
    name: str | None = Form(default=None),
    asset_type: AssetType = Form(..., alias="type"),
    size: str | None = Form(default=None),
    tags: str | None = Form(default=None),
    visibility: Visibility = Form(default=Visibility.PRIVATE),
    pin: str | None = Form(default=None),
    current_user: User = Depends(deps.get_current_user),
    service: AssetService = Depends(deps.get_asset_service),
) -> AssetRead:
    try:
        form = AssetUploadForm(
            name=name or None,
            type=asset_type,
            size=size or None,
            tags=parse_tags(tags),
            visibility=visibility,
            pin=pin,
        )
    except (ValueError, PydanticValidationError) as exc:
        raise ValidationError(str(exc)) from exc
    asset = await service.create_asset(current_user, file, form)
    return service.to_owner_view(asset)


@router.get("", response_model=list[AssetRead])
async def list_assets(
    principal: Principal = Depends(deps.get_principal),
    service: AssetService = Depends(deps.get_asset_service),
) -> list[AssetRead]:
    assets = await service.list_owned(principal)
    return [service.to_owner_view(asset) for asset in assets]


# Declared before "/{asset_id}" so the literal path wins.
@router.get("/content")
async def get_asset_content(
    key: str = Query(...),
    expires: int = Query(...),
    signature: str = Query(...),
    download: bool = Query(default=False),
    db: AsyncSession = Depends(deps.get_db_session),
    storage: StorageAdapter = Depends(deps.get_storage),
):
    if not isinstance(storage, LocalFileSystemAdapter):
        raise NotFoundError("Asset not found")
    if not storage.verify_download_url(key, expires, signature, download=download):
        raise NotFoundError("Invalid or expired link", code="link_invalid")
    result = await db.execute(select(Asset).where(Asset.object_key == key))
    asset = result.scalar_one_or_none()
    if asset is None:
        raise NotFoundError("Asset not found")
    try:
        path = storage.resolve_path(key)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if not path.exists():
        raise NotFoundError("Asset not found")
    if download:
        return FileResponse(path, media_type=asset.content_type, filename=asset.name)
    return FileResponse(path, media_type=asset.content_type)


@router.get("/{asset_id}", response_model=AssetRead)
async def get_asset(
    asset_id: UUID,
    principal: Principal = Depends(deps.get_principal),
    service: AssetService = Depends(deps.get_asset_service),
) -> AssetRead:
    asset = await service.get_owned(principal, asset_id)
    return service.to_owner_view(asset)


@router.delete("/{asset_id}", response_model=AssetDeleteResponse)
async def delete_asset(
    asset_id: UUID,
    pin: str | None = Header(default=None, alias="x-asset-pin"),
    principal: Principal = Depends(deps.get_principal),
    service: AssetService = Depends(deps.get_asset_service),
) -> AssetDeleteResponse:
    await service.delete_asset(principal, asset_id, pin=pin)
    return AssetDeleteResponse(id=asset_id)


@router.post("/{asset_id}/share", response_model=ShareTokenResponse)
async def generate_share_link(
    asset_id: UUID,
    principal: Principal = Depends(deps.get_principal),
    service: AssetService = Depends(deps.get_asset_service),
) -> ShareTokenResponse:
    token = await service.generate_share(principal, asset_id)
    return ShareTokenResponse(share_token=token)


@router.delete("/{asset_id}/share", response_model=AssetRead)
async def revoke_share_link(
    asset_id: UUID,
    principal: Principal = Depends(deps.get_principal),
    service: AssetService = Depends(deps.get_asset_service),
) -> AssetRead:
    asset = await service.revoke_share(principal, asset_id)
    return service.to_owner_view(asset)


@router.post("/{asset_id}/verify-pin", response_model=PinVerifyResponse)
async def verify_asset_pin(
    asset_id: UUID,
    payload: PinVerifyRequest,
    principal: Principal = Depends(deps.get_principal),
    service: AssetService = Depends(deps.get_asset_service),
) -> PinVerifyResponse:
    await service.verify_pin(principal, asset_id, payload.pin)
    return PinVerifyResponse(success=True)


@router.put("/{asset_id}/pin", response_model=AssetRead)
async def update_asset_pin(
    asset_id: UUID,
    payload: PinUpdateRequest,
    principal: Principal = Depends(deps.get_principal),
    service: AssetService = Depends(deps.get_asset_service),
) -> AssetRead:
    asset = await service.rotate_pin(
        principal, asset_id, current_pin=payload.current_pin, new_pin=payload.new_pin
    )
    return service.to_owner_view(asset)
