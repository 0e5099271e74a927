from uuid import UUID

from messaging.models import Participant, User
from messaging.repositories.conversation_repository import ConversationRepository
from messaging.repositories.participant_repository import ParticipantRepository

from .exceptions import ConversationNotFoundError, ForbiddenError


async def require_participant(
    conversation_id: UUID,
    user: User,
    part_repo: ParticipantRepository,
    conv_repo: ConversationRepository,
) -> Participant:
    """Returns the caller's participant row or raises.

    Raises:
        ConversationNotFoundError: If the conversation does not exist.
        ForbiddenError: If it exists but the user is not a participant.
    """
    participant = await part_repo.get_participant_by_user_and_conversation(
        user_id=user.id, conversation_id=conversation_id
    )
    if participant:
        return participant

    conversation = await conv_repo.get_conversation_by_id(conversation_id)
    if not conversation:
        raise ConversationNotFoundError(
            f"Conversation with id '{conversation_id}' not found."
        )
    raise ForbiddenError("User is not a participant in this conversation.")
