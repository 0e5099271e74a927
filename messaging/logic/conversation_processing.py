import logging
from uuid import UUID

# Logic related to processing conversation actions, decoupled from API routes.
# This helps in testing the core business logic independently.
from messaging.models import User
from messaging.schemas.conversation import (
    ConversationCreateRequest,
    ConversationCreateResponse,
    ConversationListResponse,
    ConversationRenameResponse,
    ConversationSummary,
    DirectConversationCreateRequest,
    LeaveConversationResponse,
)
from messaging.services.conversation_service import ConversationService
from messaging.services.exceptions import ServiceError
from messaging.services.membership_service import MembershipService

logger = logging.getLogger(__name__)


async def handle_list_conversations(
    user: User,
    conv_service: ConversationService,
) -> ConversationListResponse:
    """Handles listing the caller's conversations, newest activity first."""
    conversations = await conv_service.list_conversations(user)
    return ConversationListResponse(conversations=conversations)


async def handle_get_conversation(
    conversation_id: UUID,
    requesting_user: User,
    conv_service: ConversationService,
) -> ConversationSummary:
    logger.debug(
        f"Handler: Getting conversation {conversation_id} for user {requesting_user.id}"
    )
    return await conv_service.get_conversation(conversation_id, requesting_user)


async def handle_create_conversation(
    request_data: ConversationCreateRequest,
    creator_user: User,
    conv_service: ConversationService,
) -> ConversationCreateResponse:
    """
    Creates a conversation from the tagged request body.

    A direct request for a pair that already talks returns the existing
    conversation with ``created=False``; group requests always create.

    Raises:
        ValidationError: Bad or unknown user ids, self-conversation, empty member list.
        PersistenceError: If a database error occurs during creation.
    """
    body = request_data.root
    if isinstance(body, DirectConversationCreateRequest):
        summary, created = await conv_service.create_or_get_direct(
            creator_user, body.invitee_user_id
        )
        return ConversationCreateResponse(conversation=summary, created=created)

    summary = await conv_service.create_group(
        creator_user, body.member_ids, name=body.name
    )
    return ConversationCreateResponse(conversation=summary, created=True)


async def handle_rename_conversation(
    conversation_id: UUID,
    name: str | None,
    requesting_user: User,
    conv_service: ConversationService,
) -> ConversationRenameResponse:
    conversation = await conv_service.rename_group(
        conversation_id, requesting_user, name=name
    )
    return ConversationRenameResponse(id=conversation.id, name=conversation.name)


async def handle_leave_conversation(
    conversation_id: UUID,
    requesting_user: User,
    membership_service: MembershipService,
) -> LeaveConversationResponse:
    """Removes the caller from the conversation, deleting it once nobody is left."""
    try:
        result = await membership_service.leave(conversation_id, requesting_user)
    except ServiceError:
        raise
    except Exception as e:
        logger.error(
            f"Handler: Unexpected error leaving conversation {conversation_id}: {e}",
            exc_info=True,
        )
        raise ServiceError(
            f"An unexpected error occurred while leaving conversation {conversation_id}."
        )
    return LeaveConversationResponse(
        conversation_id=result.conversation_id,
        conversation_deleted=result.conversation_deleted,
    )
