"""Mentor call persistence service."""
from datetime import datetime
from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import desc, select

from app.db.models import MentorCallRecord


class CallPersistenceService:
    """Service for persisting mentor call data."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_call(self, call_id: str, user_id: int, career_path: str) -> MentorCallRecord:
        """Create a new call record or return existing one."""
        # Check if call already exists
        existing_call = await self.get_call(call_id)
        if existing_call:
            return existing_call

        call = MentorCallRecord(
            call_id=call_id,
            user_id=user_id,
            career_path=career_path,
            status="in_progress",
        )
        self.db.add(call)
        await self.db.commit()
        await self.db.refresh(call)
        return call

    async def get_call(self, call_id: str) -> Optional[MentorCallRecord]:
        """Get call by its call id."""
        result = await self.db.execute(
            select(MentorCallRecord).where(MentorCallRecord.call_id == call_id)
        )
        return result.scalar_one_or_none()

    async def complete_call(
        self,
        call_id: str,
        greeting_text: str,
        greeting_failed: bool,
        mic_granted: bool,
        transcript: str,
        ended_at: Optional[datetime] = None,
    ) -> Optional[MentorCallRecord]:
        """Store the outcome of a finished call."""
        call = await self.get_call(call_id)
        if call:
            call.status = "completed"
            call.greeting_text = greeting_text or None
            call.greeting_failed = greeting_failed
            call.mic_granted = mic_granted
            call.transcript = transcript or None
            call.ended_at = ended_at or datetime.utcnow()
            await self.db.commit()
            await self.db.refresh(call)
        return call

    async def list_calls_for_user(self, user_id: int, limit: int = 50) -> List[MentorCallRecord]:
        """Get a user's calls, newest first."""
        result = await self.db.execute(
            select(MentorCallRecord)
            .where(MentorCallRecord.user_id == user_id)
            .order_by(desc(MentorCallRecord.started_at), desc(MentorCallRecord.id))
            .limit(limit)
        )
        return list(result.scalars().all())
