from functools import lru_cache
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.context import set_user_id
from app.core.errors import AuthenticationError
from app.core.security import ACCESS_TOKEN_TYPE, decode_token
from app.core.settings import settings
from app.db.session import get_db
from app.models import User
from app.services.access_control import AccessControlEngine, AccessPolicy, Principal
from app.services.assets import AssetService
from app.services.storage.adapter import LocalFileSystemAdapter, StorageAdapter
from app.services.users import UserService


# auto_error is off so a missing header surfaces as our own 401 code instead of FastAPI's.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


def get_access_engine(request: Request) -> AccessControlEngine:
    engine = getattr(request.app.state, "access_engine", None)
    if engine is None:
        engine = AccessControlEngine(AccessPolicy.from_settings(settings))
        request.app.state.access_engine = engine
    return engine


@lru_cache(maxsize=1)
def get_storage() -> StorageAdapter:
    return LocalFileSystemAdapter(
        base_path=settings.local_upload_dir,
        base_url=settings.public_base_url,
        signing_key=settings.secret_key,
    )


async def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    if not token:
        raise AuthenticationError()
    try:
        payload = decode_token(token, expected_type=ACCESS_TOKEN_TYPE)
    except ValueError as exc:
        raise AuthenticationError("Invalid token", code="invalid_token") from exc

    user_sub = payload.get("sub")
    token_version = payload.get("tv")
    try:
        user_id = UUID(str(user_sub))
    except ValueError as exc:
        raise AuthenticationError("Invalid token", code="invalid_token") from exc

    user = await db.get(User, user_id)
    if not user:
        raise AuthenticationError("User not found", code="invalid_token")
    if token_version is not None and user.token_version != token_version:
        raise AuthenticationError("Token revoked", code="token_revoked")

    set_user_id(str(user.id))
    return user


async def get_principal(current_user: User = Depends(get_current_user)) -> Principal:
    return Principal.for_user(current_user)


async def require_admin(
    current_user: User = Depends(get_current_user),
    engine: AccessControlEngine = Depends(get_access_engine),
) -> User:
    engine.require_admin(Principal.for_user(current_user))
    return current_user


def get_asset_service(
    db: AsyncSession = Depends(get_db_session),
    engine: AccessControlEngine = Depends(get_access_engine),
    storage: StorageAdapter = Depends(get_storage),
) -> AssetService:
    return AssetService(
        db,
        engine,
        storage,
        url_expiry_seconds=settings.signed_url_expiry_seconds,
        max_upload_bytes=settings.max_upload_size_mb * 1024 * 1024,
    )


def get_user_service(
    db: AsyncSession = Depends(get_db_session),
    engine: AccessControlEngine = Depends(get_access_engine),
    storage: StorageAdapter = Depends(get_storage),
) -> UserService:
    return UserService(db, engine, storage, delete_files=settings.delete_files_with_user)
