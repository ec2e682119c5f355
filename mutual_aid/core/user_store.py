"""
Data access for user accounts.
"""
import logging
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mutual_aid.core.errors import ConflictError, DuplicateViolationError
from mutual_aid.core.submission_store import translate_storage_error
from mutual_aid.models import UserORM
from mutual_aid.models.enums import UserRole

logger = logging.getLogger(__name__)


class UserStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_username(self, username: str) -> Optional[UserORM]:
        try:
            result = await self.session.execute(select(UserORM).where(UserORM.username == username))
        except SQLAlchemyError as e:
            logger.error(f"Database error looking up user: {e}", exc_info=True)
            raise translate_storage_error(e) from None
        return result.scalars().first()

    async def create(
        self,
        username: str,
        email: str,
        password_hash: str,
        role: UserRole = UserRole.CONTRIBUTOR,
    ) -> int:
        """
        Register a new account.

        Raises:
            ConflictError: If the username or email is already taken.
        """
        try:
            result = await self.session.execute(
                select(UserORM.username, UserORM.email).where(
                    or_(UserORM.username == username, UserORM.email == email)
                )
            )
        except SQLAlchemyError as e:
            logger.error(f"Database error checking for existing user: {e}", exc_info=True)
            raise translate_storage_error(e) from None

        existing = result.first()
        if existing is not None:
            if existing.username == username:
                raise ConflictError("Username already exists")
            raise ConflictError("Email already exists")

        user = UserORM(username=username, email=email, password_hash=password_hash, role=UserRole(role).value)
        self.session.add(user)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            await self.session.rollback()
            error = translate_storage_error(e)
            if isinstance(error, DuplicateViolationError):
                # Lost a race with a concurrent registration
                raise ConflictError("Username or email already exists") from None
            logger.error(f"Database error creating user: {e}", exc_info=True)
            raise error from None

        logger.info(f"Registered new user: {username} (role: {user.role})")
        return user.id
