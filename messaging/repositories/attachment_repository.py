import uuid
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from messaging.models import Attachment, Message

from .base import BaseRepository


class AttachmentRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def create_attachment(
        self,
        message_id: uuid.UUID,
        file_name: str,
        file_type: str,
        file_size: int,
        file_path: str,
    ) -> Attachment:
        attachment = Attachment(
            message_id=message_id,
            file_name=file_name,
            file_type=file_type,
            file_size=file_size,
            file_path=file_path,
        )
        self.session.add(attachment)
        await self.session.flush()
        return attachment

    async def list_file_paths_for_conversation(
        self, conversation_id: uuid.UUID
    ) -> Sequence[str]:
        """Returns the storage path of every attachment in the conversation."""
        stmt = (
            select(Attachment.file_path)
            .join(Message, Message.id == Attachment.message_id)
            .where(Message.conversation_id == conversation_id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()
