import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from messaging.core.config import settings
from messaging.models import User
from messaging.models.base import utcnow
from messaging.repositories.conversation_repository import ConversationRepository
from messaging.repositories.message_repository import MessageRepository
from messaging.repositories.participant_repository import ParticipantRepository
from messaging.schemas.message import MessagePage, MessageResponse, PaginationMeta
from messaging.storage import StorageGateway

from .access import require_participant
from .exceptions import PersistenceError, ValidationError
from .presenters import build_message_response, build_message_responses

logger = logging.getLogger(__name__)


def normalize_content(content: str | None, *, allow_empty: bool = False) -> str:
    """Trims message text and enforces the length limit (in code points)."""
    trimmed = (content or "").strip()
    if not trimmed and not allow_empty:
        raise ValidationError("Message content is required.")
    if len(trimmed) > settings.MAX_MESSAGE_LENGTH:
        raise ValidationError(
            f"Message content cannot exceed {settings.MAX_MESSAGE_LENGTH} characters."
        )
    return trimmed


def clamp_page(limit: int | None, offset: int | None) -> tuple[int, int]:
    if limit is None:
        limit = settings.DEFAULT_PAGE_SIZE
    limit = max(1, min(limit, settings.MAX_PAGE_SIZE))
    offset = max(0, offset or 0)
    return limit, offset


class MessageService:
    def __init__(
        self,
        message_repository: MessageRepository,
        conversation_repository: ConversationRepository,
        participant_repository: ParticipantRepository,
        storage: StorageGateway,
    ):
        self.msg_repo = message_repository
        self.conv_repo = conversation_repository
        self.part_repo = participant_repository
        self.storage = storage
        self.session = message_repository.session

    async def list_messages(
        self,
        conversation_id: UUID,
        user: User,
        limit: int | None = None,
        offset: int | None = None,
    ) -> MessagePage:
        """Returns one page of messages, oldest first, with pagination metadata."""
        await require_participant(conversation_id, user, self.part_repo, self.conv_repo)
        limit, offset = clamp_page(limit, offset)

        try:
            messages = await self.msg_repo.list_messages(conversation_id, limit, offset)
            total = await self.msg_repo.count_messages(conversation_id)
        except SQLAlchemyError as e:
            logger.error(
                f"Database error fetching messages for {conversation_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError("Failed to fetch messages due to a database error.")

        return MessagePage(
            messages=await build_message_responses(
                messages, self.storage, settings.SIGNED_URL_TTL_SECONDS
            ),
            pagination=PaginationMeta(
                total=total,
                limit=limit,
                offset=offset,
                has_more=offset + limit < total,
            ),
        )

    async def send_text(
        self, conversation_id: UUID, sender_user: User, content: str
    ) -> MessageResponse:
        """Appends a text message and bumps the conversation's activity time."""
        text = normalize_content(content)
        await require_participant(
            conversation_id, sender_user, self.part_repo, self.conv_repo
        )

        now = utcnow()
        try:
            message = await self.msg_repo.create_message(
                content=text,
                conversation_id=conversation_id,
                sender_id=sender_user.id,
                created_at=now,
            )
            await self.conv_repo.update_conversation_activity(conversation_id, now)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Database error sending message to {conversation_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError("Failed to send message due to a database error.")

        logger.info(f"Message {message.id} sent to conversation {conversation_id}")
        full_message = await self.msg_repo.get_message_with_details(message.id)
        return await build_message_response(
            full_message, self.storage, settings.SIGNED_URL_TTL_SECONDS
        )
