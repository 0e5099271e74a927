from datetime import datetime
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from messaging.models import Conversation, ConversationKind, Message, Participant

from .base import BaseRepository


def make_direct_key(user_a: UUID, user_b: UUID) -> str:
    """Order-independent key identifying the direct conversation of a user pair."""
    first, second = sorted([str(user_a), str(user_b)])
    return f"{first}:{second}"


class ConversationRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session)

    async def get_conversation_by_id(
        self, conversation_id: UUID
    ) -> Conversation | None:
        """Retrieves a specific conversation by its ID, with participants loaded."""
        stmt = (
            select(Conversation)
            .filter(Conversation.id == conversation_id)
            .options(
                selectinload(Conversation.participants).joinedload(Participant.user)
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    def lock_statement(conversation_id: UUID):
        return (
            select(Conversation.kind)
            .where(Conversation.id == conversation_id)
            .with_for_update()
        )

    async def lock_conversation(self, conversation_id: UUID) -> ConversationKind | None:
        """Row-locks the conversation until commit and returns its kind.

        Membership changes take this lock first so that concurrent leavers
        see each other's removals. SQLite serializes writers and ignores it.
        """
        result = await self.session.execute(self.lock_statement(conversation_id))
        return result.scalar_one_or_none()

    async def get_direct_conversation(self, direct_key: str) -> Conversation | None:
        stmt = (
            select(Conversation)
            .filter(
                Conversation.kind == ConversationKind.DIRECT,
                Conversation.direct_key == direct_key,
            )
            .options(
                selectinload(Conversation.participants).joinedload(Participant.user)
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def create_conversation(
        self,
        kind: ConversationKind,
        member_ids: Iterable[UUID],
        *,
        name: str | None = None,
        direct_key: str | None = None,
    ) -> Conversation:
        """Creates a conversation and one participant row per member. Does not commit."""
        new_conversation = Conversation(kind=kind, name=name, direct_key=direct_key)
        self.session.add(new_conversation)
        await self.session.flush()

        for user_id in member_ids:
            self.session.add(
                Participant(user_id=user_id, conversation_id=new_conversation.id)
            )
        await self.session.flush()
        return new_conversation

    async def list_user_conversations(self, user_id: UUID) -> Sequence[Conversation]:
        """Lists conversations the user participates in, most recent activity first."""
        stmt = (
            select(Conversation)
            .join(Participant, Conversation.id == Participant.conversation_id)
            .filter(Participant.user_id == user_id)
            .options(
                selectinload(Conversation.participants).joinedload(Participant.user),
            )
            .execution_options(populate_existing=True)
            .order_by(Conversation.updated_at.desc(), Conversation.id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().unique().all()

    async def get_unread_counts(
        self, user_id: UUID, conversation_ids: Iterable[UUID] | None = None
    ) -> dict[UUID, int]:
        """Counts messages from others newer than the user's read watermark.

        A null watermark means nothing has been read yet. Conversations with no
        unread messages are absent from the result.
        """
        stmt = (
            select(Message.conversation_id, func.count(Message.id))
            .join(
                Participant,
                and_(
                    Participant.conversation_id == Message.conversation_id,
                    Participant.user_id == user_id,
                ),
            )
            .where(
                Message.sender_id != user_id,
                or_(
                    Participant.last_read_at.is_(None),
                    Message.created_at > Participant.last_read_at,
                ),
            )
            .group_by(Message.conversation_id)
        )
        if conversation_ids is not None:
            stmt = stmt.where(Message.conversation_id.in_(list(conversation_ids)))
        result = await self.session.execute(stmt)
        return {conversation_id: count for conversation_id, count in result.all()}

    async def get_last_messages(
        self, conversation_ids: Iterable[UUID]
    ) -> dict[UUID, Message]:
        """Returns the newest message of each conversation, keyed by conversation id."""
        ids = list(conversation_ids)
        if not ids:
            return {}
        ranked = (
            select(
                Message.id.label("message_id"),
                func.row_number()
                .over(
                    partition_by=Message.conversation_id,
                    order_by=(Message.created_at.desc(), Message.id.desc()),
                )
                .label("position"),
            )
            .where(Message.conversation_id.in_(ids))
            .subquery()
        )
        stmt = (
            select(Message)
            .join(ranked, ranked.c.message_id == Message.id)
            .where(ranked.c.position == 1)
            .options(joinedload(Message.sender))
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return {message.conversation_id: message for message in result.scalars().all()}

    async def update_conversation_activity(
        self, conversation_id: UUID, activity_time: datetime
    ) -> None:
        """Bumps updated_at to ``activity_time`` unless it is already later."""
        stmt = (
            update(Conversation)
            .where(
                Conversation.id == conversation_id,
                Conversation.updated_at < activity_time,
            )
            .values(updated_at=activity_time)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)

    async def rename_conversation(
        self, conversation: Conversation, name: str | None
    ) -> Conversation:
        conversation.name = name
        self.session.add(conversation)
        await self.session.flush()
        return conversation

    async def delete_conversation(self, conversation_id: UUID) -> None:
        """Deletes the conversation row; the database cascades to its children."""
        stmt = delete(Conversation).where(Conversation.id == conversation_id)
        await self.session.execute(stmt)
