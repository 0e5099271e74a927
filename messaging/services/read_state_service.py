import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from messaging.models import User
from messaging.models.base import utcnow
from messaging.repositories.conversation_repository import ConversationRepository
from messaging.repositories.participant_repository import ParticipantRepository

from .access import require_participant
from .exceptions import PersistenceError

logger = logging.getLogger(__name__)


class ReadStateService:
    def __init__(
        self,
        participant_repository: ParticipantRepository,
        conversation_repository: ConversationRepository,
    ):
        self.part_repo = participant_repository
        self.conv_repo = conversation_repository
        self.session = participant_repository.session

    async def mark_read(self, conversation_id: UUID, user: User) -> datetime | None:
        """Advances the user's read watermark to now and returns the stored value.

        The watermark only moves forward, so repeated or racing calls are harmless.
        """
        await require_participant(conversation_id, user, self.part_repo, self.conv_repo)
        user_id = user.id
        try:
            await self.part_repo.advance_last_read(
                user_id=user_id, conversation_id=conversation_id, read_at=utcnow()
            )
            await self.session.commit()
            return await self.part_repo.get_last_read(user_id, conversation_id)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Database error marking {conversation_id} read for user {user_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError(
                "Failed to mark conversation as read due to a database error."
            )
