"""Local users mirrored from Clerk identities."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models import User

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_clerk_id(self, clerk_user_id: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.clerk_user_id == clerk_user_id))
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def create_user(self, clerk_user_id: str, email: str, username: Optional[str] = None) -> User:
        user = User(clerk_user_id=clerk_user_id, email=email, username=username)
        try:
            self.db.add(user)
            await self.db.commit()
            await self.db.refresh(user)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise e
        logger.info(f"Created local user for Clerk subject {clerk_user_id}")
        return user

    async def get_or_create_user(self, clerk_user_id: str, clerk_payload: dict) -> User:
        """Return the local user for a Clerk subject, creating it on first sight.

        A client polling several generations right after sign-up sends
        parallel first requests; whichever loses the insert reads the
        winner's row.
        """
        user = await self.get_user_by_clerk_id(clerk_user_id)
        if user:
            return user

        try:
            # Session tokens only carry an email when the Clerk JWT template adds it
            return await self.create_user(
                clerk_user_id=clerk_user_id,
                email=clerk_payload.get("email") or f"{clerk_user_id}@users.clerk.local",
                username=clerk_payload.get("username"),
            )
        except IntegrityError:
            user = await self.get_user_by_clerk_id(clerk_user_id)
            if user is None:
                raise
            return user
