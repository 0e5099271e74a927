import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from messaging.models import ConversationKind, User
from messaging.repositories.attachment_repository import AttachmentRepository
from messaging.repositories.conversation_repository import ConversationRepository
from messaging.repositories.participant_repository import ParticipantRepository
from messaging.storage import StorageGateway, is_inline_reference

from .access import require_participant
from .attachment_service import delete_stored_objects
from .exceptions import ConversationNotFoundError, PersistenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaveResult:
    conversation_id: UUID
    conversation_deleted: bool


class MembershipService:
    """Handles a participant leaving a conversation.

    A conversation nobody can reach any more is deleted on the spot, together
    with its messages, attachment rows and stored files. Direct conversations
    always hold exactly two participants, so either of them leaving ends it.
    """

    def __init__(
        self,
        participant_repository: ParticipantRepository,
        conversation_repository: ConversationRepository,
        attachment_repository: AttachmentRepository,
        storage: StorageGateway,
    ):
        self.part_repo = participant_repository
        self.conv_repo = conversation_repository
        self.att_repo = attachment_repository
        self.storage = storage
        self.session = participant_repository.session

    async def leave(self, conversation_id: UUID, user: User) -> LeaveResult:
        await require_participant(conversation_id, user, self.part_repo, self.conv_repo)
        user_id = user.id

        file_paths: list[str] = []
        try:
            # Held until commit; concurrent leavers then count each other's removal
            kind = await self.conv_repo.lock_conversation(conversation_id)
            if kind is None:
                await self.session.rollback()
                raise ConversationNotFoundError(
                    f"Conversation with id '{conversation_id}' not found."
                )
            is_direct = kind == ConversationKind.DIRECT
            await self.part_repo.remove_participant(
                user_id=user_id, conversation_id=conversation_id
            )
            remaining = await self.part_repo.count_participants(conversation_id)
            tear_down = remaining == 0 or is_direct
            if tear_down:
                file_paths = [
                    path
                    for path in await self.att_repo.list_file_paths_for_conversation(
                        conversation_id
                    )
                    if not is_inline_reference(path)
                ]
                await self.conv_repo.delete_conversation(conversation_id)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Database error while user {user_id} left {conversation_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError("Failed to leave conversation due to a database error.")

        if not tear_down:
            logger.info(
                f"User {user_id} left conversation {conversation_id}; "
                f"{remaining} participant(s) remain"
            )
            return LeaveResult(conversation_id=conversation_id, conversation_deleted=False)

        # Rows are gone; stored files are removed afterwards and may lag behind.
        failed = await delete_stored_objects(self.storage, file_paths)
        logger.info(
            f"Conversation {conversation_id} deleted after user {user_id} left "
            f"({len(file_paths) - len(failed)}/{len(file_paths)} stored file(s) removed)"
        )
        return LeaveResult(conversation_id=conversation_id, conversation_deleted=True)
