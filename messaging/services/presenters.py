import logging
from typing import Iterable
from uuid import UUID

from messaging.models import Attachment, Conversation, ConversationKind, Message
from messaging.schemas.conversation import ConversationSummary
from messaging.schemas.message import (
    AttachmentResponse,
    LastMessage,
    MessageResponse,
    SenderSummary,
)
from messaging.schemas.participant import ParticipantSummary
from messaging.storage import StorageGateway, is_inline_reference

logger = logging.getLogger(__name__)

GROUP_FALLBACK_NAME = "Group Chat"
UNKNOWN_NAME = "Unknown"


def display_name_for(conversation: Conversation, viewer_id: UUID) -> str:
    """Name shown to the viewer: the counterpart for DIRECT, stored name for GROUP."""
    if conversation.kind == ConversationKind.DIRECT:
        others = [p.user for p in conversation.participants if p.user_id != viewer_id]
        if others and others[0] is not None:
            return others[0].display_name
        return UNKNOWN_NAME
    return conversation.name or GROUP_FALLBACK_NAME


def build_conversation_summary(
    conversation: Conversation,
    viewer_id: UUID,
    *,
    unread_count: int = 0,
    last_message: Message | None = None,
) -> ConversationSummary:
    return ConversationSummary(
        id=conversation.id,
        kind=conversation.kind,
        name=display_name_for(conversation, viewer_id),
        unread_count=unread_count,
        last_message=LastMessage.model_validate(last_message) if last_message else None,
        participants=[
            ParticipantSummary.model_validate(p.user) for p in conversation.participants
        ],
        updated_at=conversation.updated_at,
    )


async def build_download_url(
    storage: StorageGateway,
    file_path: str,
    ttl_seconds: int,
    file_name: str | None = None,
) -> str | None:
    """Signs a short-lived URL for a stored object.

    Backends without signing (inline references) hand back the raw path.
    A signing failure yields None rather than leaking the durable path.
    """
    try:
        signed = await storage.get_signed_url(file_path, ttl_seconds, file_name)
    except Exception as e:
        logger.warning(f"Failed to sign download URL for attachment: {e}")
        return None
    if signed is None and is_inline_reference(file_path):
        return file_path
    return signed


async def build_attachment_response(
    attachment: Attachment, storage: StorageGateway, ttl_seconds: int
) -> AttachmentResponse:
    return AttachmentResponse(
        id=attachment.id,
        file_name=attachment.file_name,
        file_type=attachment.file_type,
        file_size=attachment.file_size,
        download_url=await build_download_url(
            storage, attachment.file_path, ttl_seconds, attachment.file_name
        ),
        created_at=attachment.created_at,
    )


async def build_message_response(
    message: Message, storage: StorageGateway, ttl_seconds: int
) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        sender=SenderSummary.model_validate(message.sender) if message.sender else None,
        content=message.content,
        created_at=message.created_at,
        attachments=[
            await build_attachment_response(attachment, storage, ttl_seconds)
            for attachment in message.attachments
        ],
    )


async def build_message_responses(
    messages: Iterable[Message], storage: StorageGateway, ttl_seconds: int
) -> list[MessageResponse]:
    return [
        await build_message_response(message, storage, ttl_seconds)
        for message in messages
    ]
