import uuid
from datetime import datetime
from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from messaging.models import Message

from .base import BaseRepository


class MessageRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create_message(
        self,
        content: str,
        conversation_id: uuid.UUID,
        sender_id: uuid.UUID,
        created_at: datetime,
    ) -> Message:
        """Creates and adds a new message to the session."""
        new_message = Message(
            id=uuid.uuid4(),
            content=content,
            conversation_id=conversation_id,
            sender_id=sender_id,
            created_at=created_at,
            updated_at=created_at,
        )
        self.session.add(new_message)
        await self.session.flush()
        return new_message

    async def get_message_with_details(self, message_id: uuid.UUID) -> Message | None:
        """Loads a message together with its sender and attachments."""
        stmt = (
            select(Message)
            .where(Message.id == message_id)
            .options(joinedload(Message.sender), selectinload(Message.attachments))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_messages(
        self, conversation_id: uuid.UUID, limit: int, offset: int
    ) -> Sequence[Message]:
        """Retrieves one page of a conversation's messages, oldest first."""
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .options(joinedload(Message.sender), selectinload(Message.attachments))
            .order_by(Message.created_at.asc(), Message.id.asc())
            .execution_options(populate_existing=True)
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count_messages(self, conversation_id: uuid.UUID) -> int:
        stmt = select(func.count(Message.id)).where(
            Message.conversation_id == conversation_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()
