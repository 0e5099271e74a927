from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from messaging.models import Participant

from .base import BaseRepository


class ParticipantRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def get_participant_by_user_and_conversation(
        self, user_id: UUID, conversation_id: UUID
    ) -> Participant | None:
        """Retrieves a participant record by user and conversation ID."""
        stmt = select(Participant).filter(
            Participant.user_id == user_id,
            Participant.conversation_id == conversation_id,
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def advance_last_read(
        self, user_id: UUID, conversation_id: UUID, read_at: datetime
    ) -> None:
        """Moves the read watermark forward to ``read_at``; never moves it back."""
        stmt = (
            update(Participant)
            .where(
                Participant.user_id == user_id,
                Participant.conversation_id == conversation_id,
                or_(
                    Participant.last_read_at.is_(None),
                    Participant.last_read_at < read_at,
                ),
            )
            .values(last_read_at=read_at)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def get_last_read(self, user_id: UUID, conversation_id: UUID) -> datetime | None:
        stmt = select(Participant.last_read_at).where(
            Participant.user_id == user_id,
            Participant.conversation_id == conversation_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def remove_participant(self, user_id: UUID, conversation_id: UUID) -> int:
        """Deletes the participant row; returns the number of rows removed."""
        stmt = delete(Participant).where(
            Participant.user_id == user_id,
            Participant.conversation_id == conversation_id,
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def count_participants(self, conversation_id: UUID) -> int:
        stmt = select(func.count(Participant.id)).where(
            Participant.conversation_id == conversation_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()
