import logging
from typing import Sequence
from uuid import UUID

from fastapi import UploadFile

from messaging.core.config import settings
from messaging.models import User
from messaging.schemas.message import (
    MarkReadResponse,
    MessageEnvelope,
    MessagePage,
)
from messaging.services.attachment_service import AttachmentService, IncomingFile
from messaging.services.exceptions import ValidationError
from messaging.services.message_service import MessageService
from messaging.services.read_state_service import ReadStateService

logger = logging.getLogger(__name__)


async def handle_list_messages(
    conversation_id: UUID,
    requesting_user: User,
    msg_service: MessageService,
    limit: int | None = None,
    offset: int | None = None,
) -> MessagePage:
    return await msg_service.list_messages(
        conversation_id, requesting_user, limit=limit, offset=offset
    )


async def handle_create_message(
    conversation_id: UUID,
    content: str,
    sender_user: User,
    msg_service: MessageService,
) -> MessageEnvelope:
    message = await msg_service.send_text(conversation_id, sender_user, content)
    return MessageEnvelope(message=message)


async def read_upload(upload: UploadFile) -> IncomingFile:
    """Reads an uploaded part into memory.

    At most one byte past the size limit is read, which is enough for
    validation to reject an oversized file without buffering all of it.
    """
    data = await upload.read(settings.MAX_ATTACHMENT_BYTES + 1)
    return IncomingFile(
        file_name=upload.filename or "",
        content_type=upload.content_type,
        data=data,
    )


async def handle_upload_attachments(
    conversation_id: UUID,
    uploads: Sequence[UploadFile],
    content: str | None,
    sender_user: User,
    attachment_service: AttachmentService,
) -> MessageEnvelope:
    """
    Sends a message carrying the uploaded files.

    Raises:
        ValidationError: File count, size, type or name is not acceptable.
        ForbiddenError: The sender is not a participant.
        StorageError: The object store rejected an upload.
        PersistenceError: The message could not be committed; uploads were removed.
    """
    if len(uploads) > settings.MAX_ATTACHMENTS_PER_MESSAGE:
        raise ValidationError(
            f"Maximum {settings.MAX_ATTACHMENTS_PER_MESSAGE} files per message."
        )
    files = [await read_upload(upload) for upload in uploads]
    logger.debug(
        f"Handler: {len(files)} file(s) received for conversation {conversation_id}"
    )
    message = await attachment_service.send_with_attachments(
        conversation_id, sender_user, files, content=content
    )
    return MessageEnvelope(message=message)


async def handle_mark_read(
    conversation_id: UUID,
    requesting_user: User,
    read_state_service: ReadStateService,
) -> MarkReadResponse:
    last_read_at = await read_state_service.mark_read(conversation_id, requesting_user)
    return MarkReadResponse(last_read_at=last_read_at)
