import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status

from messaging.api.common import BaseRouter
from messaging.auth_config import current_active_user
from messaging.logic.message_processing import (
    handle_create_message,
    handle_list_messages,
    handle_mark_read,
    handle_upload_attachments,
)
from messaging.models import User
from messaging.schemas.message import (
    MarkReadResponse,
    MessageCreateRequest,
    MessageEnvelope,
    MessagePage,
)
from messaging.services.attachment_service import AttachmentService
from messaging.services.dependencies import (
    get_attachment_service,
    get_message_service,
    get_read_state_service,
)
from messaging.services.message_service import MessageService
from messaging.services.read_state_service import ReadStateService

logger = logging.getLogger(__name__)
messages_router_instance = APIRouter(prefix="/conversations/{conversation_id}")
router = BaseRouter(router=messages_router_instance, default_tags=["messages"])


@router.get("/messages", response_model=MessagePage)
async def list_messages(
    conversation_id: UUID,
    limit: int | None = Query(None),
    offset: int | None = Query(None),
    user: User = Depends(current_active_user),
    msg_service: MessageService = Depends(get_message_service),
):
    """Returns a page of messages, oldest first. Out-of-range paging values are clamped."""
    return await handle_list_messages(
        conversation_id=conversation_id,
        requesting_user=user,
        msg_service=msg_service,
        limit=limit,
        offset=offset,
    )


@router.post(
    "/messages",
    response_model=MessageEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def create_message(
    conversation_id: UUID,
    message_in: MessageCreateRequest,
    user: User = Depends(current_active_user),
    msg_service: MessageService = Depends(get_message_service),
):
    return await handle_create_message(
        conversation_id=conversation_id,
        content=message_in.content,
        sender_user=user,
        msg_service=msg_service,
    )


@router.post(
    "/attachments",
    response_model=MessageEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachments(
    conversation_id: UUID,
    files: list[UploadFile] = File(...),
    content: str | None = Form(None),
    user: User = Depends(current_active_user),
    attachment_service: AttachmentService = Depends(get_attachment_service),
):
    """Sends a message with one or more files attached."""
    return await handle_upload_attachments(
        conversation_id=conversation_id,
        uploads=files,
        content=content,
        sender_user=user,
        attachment_service=attachment_service,
    )


@router.patch("/read", response_model=MarkReadResponse)
async def mark_conversation_read(
    conversation_id: UUID,
    user: User = Depends(current_active_user),
    read_state_service: ReadStateService = Depends(get_read_state_service),
):
    return await handle_mark_read(
        conversation_id=conversation_id,
        requesting_user=user,
        read_state_service=read_state_service,
    )
