from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.core.health import live_payload, ready_payload, status_summary_payload
from app.core.limiter import limiter

router = APIRouter(tags=["health"])


@router.get("/health/live", summary="Process is up")
@limiter.exempt
async def health_live(request: Request):
    return await live_payload()


@router.get(
    "/health/ready",
    summary="Database and storage reachable",
    responses={503: {"description": "A required dependency is down"}},
)
@limiter.exempt
async def health_ready(request: Request):
    payload = await ready_payload()
    if not payload["ready"]:
        # Not enveloped: probes only look at the status code.
        return JSONResponse(status_code=503, content=payload)
    return payload


@router.get("/status/summary", tags=["status"], summary="Every check plus the running version")
@limiter.exempt
async def status_summary(request: Request):
    return await status_summary_payload()
