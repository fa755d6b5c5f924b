"""User persistence service."""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.db.models import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserPersistenceService:
    """Service for persisting users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_user(self, email: str, password_hash: str) -> User:
        """Create a new user."""
        user = User(email=normalize_email(email), password_hash=password_hash)
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Get user by email, case-insensitively."""
        result = await self.db.execute(
            select(User).where(User.email == normalize_email(email))
        )
        return result.scalar_one_or_none()

    async def get_user(self, user_id: int) -> Optional[User]:
        """Get user by id."""
        return await self.db.get(User, user_id)
