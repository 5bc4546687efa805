from fastapi import APIRouter, Depends, Query, Request

from app.api import deps
from app.core.errors import ValidationError
from app.core.limiter import limiter, share_rate_limit
from app.schemas.share import ShareAccessRequest, ShareAccessResponse, SharedAssetRead
from app.services.assets import AssetService

router = APIRouter(prefix="/share", tags=["share"])


@router.get("", response_model=SharedAssetRead)
@limiter.limit(share_rate_limit)
async def read_shared_asset(
    request: Request,
    token: str | None = Query(default=None),
    service: AssetService = Depends(deps.get_asset_service),
) -> SharedAssetRead:
    if not token:
        raise ValidationError("Token required", code="token_required")
    return await service.get_shared(token)


@router.post("/access", response_model=ShareAccessResponse)
@limiter.limit(share_rate_limit)
async def access_shared_asset(
    payload: ShareAccessRequest,
    request: Request,
    service: AssetService = Depends(deps.get_asset_service),
) -> ShareAccessResponse:
    url = await service.access_shared(payload.token, payload.pin)
    return ShareAccessResponse(url=url)


@router.post("/download", response_model=ShareAccessResponse)
@limiter.limit(share_rate_limit)
async def download_shared_asset(
    payload: ShareAccessRequest,
    request: Request,
    service: AssetService = Depends(deps.get_asset_service),
) -> ShareAccessResponse:
    url = await service.access_shared(payload.token, payload.pin, download=True)
    return ShareAccessResponse(url=url)
