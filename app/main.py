from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from app.api.v1 import api_router
from app.core.errors import register_exception_handlers
from app.core.health import APP_VERSION
from app.core.limiter import limiter
from app.core.logging import configure_logging
from app.core.response_envelope import register_response_envelope
from app.core.settings import settings
from app.events import register_event_handlers
from app.middlewares.request_context import RequestContextMiddleware
from app.middlewares.security_headers import SecurityHeadersMiddleware
from app.middlewares.trust_proxies import TrustedProxiesMiddleware
from app.services.access_control import AccessControlEngine, AccessPolicy


def _add_middlewares(app: FastAPI) -> None:
    # Starlette runs the last-added middleware first: CORS sees the request
    # before anything else, the rate limiter last.
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(TrustedProxiesMiddleware, proxies_count=settings.proxies_count)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.enable_hsts)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Asset-Pin", "X-Request-Id"],
        expose_headers=["X-Request-Id", "Content-Disposition"],
    )


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    is_production = settings.environment == "production"
    app = FastAPI(
        title="DAM Backend",
        version=APP_VERSION,
        docs_url=None if is_production else "/docs",
        redoc_url=None,
    )
    # One engine per process; handlers receive it through deps.get_access_engine.
    app.state.access_engine = AccessControlEngine(AccessPolicy.from_settings(settings))
    app.state.limiter = limiter

    register_exception_handlers(app)
    register_response_envelope(app)
    _add_middlewares(app)
    app.include_router(api_router, prefix="/api/v1")
    register_event_handlers(app)
    return app


app = create_app()
