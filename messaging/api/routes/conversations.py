import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from messaging.api.common import BaseRouter
from messaging.auth_config import current_active_user
from messaging.logic.conversation_processing import (
    handle_create_conversation,
    handle_get_conversation,
    handle_leave_conversation,
    handle_list_conversations,
    handle_rename_conversation,
)
from messaging.models import User
from messaging.schemas.conversation import (
    ConversationCreateRequest,
    ConversationCreateResponse,
    ConversationListResponse,
    ConversationRenameRequest,
    ConversationRenameResponse,
    ConversationSummary,
    LeaveConversationResponse,
)
from messaging.services.conversation_service import ConversationService
from messaging.services.dependencies import (
    get_conversation_service,
    get_membership_service,
)
from messaging.services.membership_service import MembershipService

logger = logging.getLogger(__name__)
conversations_router_instance = APIRouter(prefix="/conversations")
router = BaseRouter(router=conversations_router_instance, default_tags=["conversations"])


@router.get("", response_model=ConversationListResponse)
async def list_conversations(
    user: User = Depends(current_active_user),
    conv_service: ConversationService = Depends(get_conversation_service),
):
    """Lists the caller's conversations with unread counts and last messages."""
    return await handle_list_conversations(user=user, conv_service=conv_service)


@router.post(
    "",
    response_model=ConversationCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_conversation(
    response: Response,
    request_data: ConversationCreateRequest,
    user: User = Depends(current_active_user),
    conv_service: ConversationService = Depends(get_conversation_service),
):
    """Creates a group, or creates-or-returns the direct conversation with one user."""
    result = await handle_create_conversation(
        request_data=request_data, creator_user=user, conv_service=conv_service
    )
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return result


@router.get("/{conversation_id}", response_model=ConversationSummary)
async def get_conversation(
    conversation_id: UUID,
    user: User = Depends(current_active_user),
    conv_service: ConversationService = Depends(get_conversation_service),
):
    return await handle_get_conversation(
        conversation_id=conversation_id,
        requesting_user=user,
        conv_service=conv_service,
    )


@router.patch("/{conversation_id}", response_model=ConversationRenameResponse)
async def rename_conversation(
    conversation_id: UUID,
    request_data: ConversationRenameRequest,
    user: User = Depends(current_active_user),
    conv_service: ConversationService = Depends(get_conversation_service),
):
    """Sets or clears the name of a group conversation."""
    return await handle_rename_conversation(
        conversation_id=conversation_id,
        name=request_data.name,
        requesting_user=user,
        conv_service=conv_service,
    )


@router.delete("/{conversation_id}", response_model=LeaveConversationResponse)
async def leave_conversation(
    conversation_id: UUID,
    user: User = Depends(current_active_user),
    membership_service: MembershipService = Depends(get_membership_service),
):
    """Leaves the conversation; the last participant out deletes it."""
    return await handle_leave_conversation(
        conversation_id=conversation_id,
        requesting_user=user,
        membership_service=membership_service,
    )
