from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from app.core.security import check_credentials, get_password_hash
from app.models.user import User
from app.services import asset_store
from app.services.access_control import AccessControlEngine, Principal
from app.services.audit import record_audit_event
from app.services.role_policy import normalize_email
from app.services.storage.adapter import StorageAdapter

logger = logging.getLogger(__name__)


class UserService:
    def __init__(
        self,
        db: AsyncSession,
        engine: AccessControlEngine,
        storage: StorageAdapter | None = None,
        *,
        delete_files: bool = True,
    ) -> None:
        self.db = db
        self.engine = engine
        self.storage = storage
        self.delete_files = delete_files

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == normalize_email(email))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def signup(self, *, name: str, email: str, password: str) -> User:
        email = normalize_email(email)
        if await self.get_by_email(email):
            raise ConflictError("Email already registered", code="email_taken")
        try:
            hashed = get_password_hash(password)
        except ValueError as exc:
            raise ValidationError(str(exc), code="password_too_short") from exc

        user = User(
            name=name.strip(),
            email=email,
            hashed_password=hashed,
            role=self.engine.role_for_new_account(email),
            token_version=0,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError("Email already registered", code="email_taken") from exc
        await self.db.refresh(user)
        record_audit_event(
            actor_id=user.id,
            action="user.signup",
            resource_type="user",
            resource_id=user.id,
            role=user.role.value,
        )
        return user

    async def authenticate(self, *, email: str, password: str) -> User:
        user = await self.get_by_email(email)
        if not check_credentials(password, user.hashed_password if user else None):
            raise AuthenticationError("Invalid credentials", code="invalid_credentials")
        return user

    async def logout(self, user: User) -> None:
        user.token_version += 1
        self.db.add(user)
        await self.db.commit()

    async def list_users(self, principal: Principal) -> list[User]:
        self.engine.require_admin(principal)
        stmt = select(User).order_by(User.created_at.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def delete_user(self, principal: Principal, user_id: UUID) -> int:
        """Delete a user together with every asset they own.

        Returns the number of assets removed. Stored files are removed after
        the database commit so a failed commit never leaves dangling records.
        """
        self.engine.require_admin(principal)
        if principal.user_id == user_id:
            raise ValidationError("Administrators cannot delete their own account", code="self_delete")

        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        assets = await asset_store.list_assets_for_owner(self.db, user_id)
        object_keys = [asset.object_key for asset in assets]

        await asset_store.delete_assets_for_owner(self.db, user_id)
        await self.db.delete(user)
        await self.db.commit()

        if self.delete_files and self.storage is not None:
            for key in object_keys:
                try:
                    self.storage.delete_object(key)
                except (OSError, ValueError):
                    logger.exception("Failed to remove stored file", extra={"event": {"object_key": key}})

        record_audit_event(
            actor_id=principal.user_id,
            action="user.deleted",
            resource_type="user",
            resource_id=user_id,
            assets_deleted=len(object_keys),
        )
        return len(object_keys)
