from fastapi import APIRouter, Depends, Request

from app.api import deps
from app.core.limiter import limiter
from app.core.security import create_access_token
from app.core.settings import settings
from app.models import User
from app.schemas.auth import AuthResponse, LoginRequest, SignupRequest, UserOut
from app.services.users import UserService

router = APIRouter(prefix="/auth", tags=["auth"])


def _issue(user: User) -> AuthResponse:
    token = create_access_token(
        str(user.id), role=user.role.value, token_version=user.token_version
    )
    return AuthResponse(access_token=token, user=UserOut.model_validate(user))


@router.post("/signup", response_model=AuthResponse)
@limiter.limit(lambda: f"{settings.rate_limit_per_minute}/minute")
async def signup(
    payload: SignupRequest,
    request: Request,
    service: UserService = Depends(deps.get_user_service),
) -> AuthResponse:
    user = await service.signup(name=payload.name, email=payload.email, password=payload.password)
    return _issue(user)


@router.post("/login", response_model=AuthResponse)
@limiter.limit(lambda: f"{settings.rate_limit_per_minute}/minute")
async def login(
    credentials: LoginRequest,
    request: Request,
    service: UserService = Depends(deps.get_user_service),
) -> AuthResponse:
    user = await service.authenticate(email=credentials.email, password=credentials.password)
    return _issue(user)


@router.post("/logout", status_code=204)
async def logout(
    current_user: User = Depends(deps.get_current_user),
    service: UserService = Depends(deps.get_user_service),
) -> None:
    await service.logout(current_user)
    return None


@router.get("/me", response_model=UserOut)
async def read_current_user(current_user: User = Depends(deps.get_current_user)) -> UserOut:
    return UserOut.model_validate(current_user)
