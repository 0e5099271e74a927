import asyncio
import logging
import re
import secrets
import time
from dataclasses import dataclass
from typing import Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from messaging.core.config import settings
from messaging.models import User
from messaging.models.base import utcnow
from messaging.repositories.attachment_repository import AttachmentRepository
from messaging.repositories.conversation_repository import ConversationRepository
from messaging.repositories.message_repository import MessageRepository
from messaging.repositories.participant_repository import ParticipantRepository
from messaging.schemas.message import MessageResponse
from messaging.storage import StorageGateway, is_inline_reference

from .access import require_participant
from .exceptions import PersistenceError, StorageError, ValidationError
from .message_service import normalize_content
from .presenters import build_message_response

logger = logging.getLogger(__name__)

DEFAULT_FILE_TYPE = "application/octet-stream"

ALLOWED_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "text/plain",
        "text/csv",
        "video/mp4",
        "video/quicktime",
    }
)

ALLOWED_EXTENSIONS = frozenset(
    {
        "pdf", "doc", "docx", "xls", "xlsx",
        "jpg", "jpeg", "png", "gif", "webp",
        "txt", "csv", "mp4", "mov",
    }
)

MAX_FILE_NAME_LENGTH = 255
MAX_KEY_NAME_LENGTH = 200


@dataclass(frozen=True)
class IncomingFile:
    """A file received from the client, fully read into memory."""

    file_name: str
    content_type: str | None
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        if "." not in self.file_name:
            return ""
        return self.file_name.rsplit(".", 1)[-1].lower()


@dataclass(frozen=True)
class UploadedFile:
    source: IncomingFile
    file_path: str


def validate_file(file: IncomingFile) -> None:
    """Raises ValidationError naming the file if it breaks any upload rule."""
    name = file.file_name or ""
    if not name or len(name) > MAX_FILE_NAME_LENGTH:
        raise ValidationError(f'Invalid file name for "{name}".')
    if ".." in name or "/" in name or "\\" in name:
        raise ValidationError(f'Invalid file name: "{name}".')
    if file.size == 0:
        raise ValidationError(f'File "{name}" is empty.')
    if file.size > settings.MAX_ATTACHMENT_BYTES:
        limit_mb = settings.MAX_ATTACHMENT_BYTES // (1024 * 1024)
        raise ValidationError(f'File "{name}" exceeds {limit_mb}MB limit.')
    if file.content_type not in ALLOWED_TYPES and file.extension not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f'File type not allowed for "{name}". '
            "Allowed: PDF, Word, Excel, Images, Text, CSV, Video."
        )


def validate_files(files: Sequence[IncomingFile]) -> None:
    if not files:
        raise ValidationError("At least one file is required.")
    if len(files) > settings.MAX_ATTACHMENTS_PER_MESSAGE:
        raise ValidationError(
            f"Maximum {settings.MAX_ATTACHMENTS_PER_MESSAGE} files per message."
        )
    for file in files:
        validate_file(file)
        sanitize_file_name(file.file_name)


def sanitize_file_name(name: str) -> str:
    """Reduces a display name to a safe storage key component."""
    sanitized = re.sub(r"[^a-zA-Z0-9.-]", "_", name)
    sanitized = sanitized.strip(".")[:MAX_KEY_NAME_LENGTH]
    if not sanitized:
        raise ValidationError(f'Invalid file name after sanitization: "{name}".')
    return sanitized


def build_temp_key(conversation_id: UUID, file_name: str) -> str:
    timestamp = int(time.time() * 1000)
    suffix = secrets.token_hex(4)
    return (
        f"messages/{conversation_id}/temp/"
        f"{timestamp}-{suffix}-{sanitize_file_name(file_name)}"
    )


def default_caption(files: Sequence[IncomingFile]) -> str:
    if len(files) == 1:
        return f"📎 {files[0].file_name}"
    return f"📎 {len(files)} files"


async def delete_stored_objects(
    storage: StorageGateway, file_paths: Sequence[str]
) -> list[str]:
    """Best-effort delete of every path; returns the paths that could not be removed.

    Inline references own no stored object and are skipped.
    """
    failed = []
    for file_path in file_paths:
        if is_inline_reference(file_path):
            continue
        try:
            await storage.delete(file_path)
        except Exception as e:
            logger.warning(f"Failed to clean up stored file {file_path}: {e}")
            failed.append(file_path)
    return failed


class AttachmentService:
    """Sends messages carrying files.

    Files go to object storage first; the message and attachment rows are then
    committed in one transaction. When anything after the first upload fails,
    every object uploaded by the call is deleted again, so storage never keeps
    blobs that no committed row refers to.
    """

    def __init__(
        self,
        message_repository: MessageRepository,
        attachment_repository: AttachmentRepository,
        conversation_repository: ConversationRepository,
        participant_repository: ParticipantRepository,
        storage: StorageGateway,
    ):
        self.msg_repo = message_repository
        self.att_repo = attachment_repository
        self.conv_repo = conversation_repository
        self.part_repo = participant_repository
        self.storage = storage
        self.session = message_repository.session

    async def send_with_attachments(
        self,
        conversation_id: UUID,
        sender_user: User,
        files: Sequence[IncomingFile],
        content: str | None = None,
    ) -> MessageResponse:
        validate_files(files)
        text = normalize_content(content, allow_empty=True)
        await require_participant(
            conversation_id, sender_user, self.part_repo, self.conv_repo
        )

        manifest: list[str] = []
        uploaded = await self._upload_all(conversation_id, files, manifest)

        try:
            message_id = await self._commit(
                conversation_id,
                sender_user,
                text or default_caption(files),
                uploaded,
            )
        except SQLAlchemyError as e:
            await self._abort(manifest)
            logger.error(
                f"Database error saving attachments for {conversation_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError(
                "Failed to save attachments due to a database error."
            ) from e
        except BaseException:
            await self._abort(manifest)
            raise

        logger.info(
            f"Message {message_id} with {len(uploaded)} attachment(s) sent to "
            f"conversation {conversation_id}"
        )
        full_message = await self.msg_repo.get_message_with_details(message_id)
        return await build_message_response(
            full_message, self.storage, settings.SIGNED_URL_TTL_SECONDS
        )

    async def _upload_all(
        self,
        conversation_id: UUID,
        files: Sequence[IncomingFile],
        manifest: list[str],
    ) -> list[UploadedFile]:
        """Uploads every file, recording each stored path in ``manifest`` as it lands."""
        uploaded = []
        try:
            for file in files:
                key = build_temp_key(conversation_id, file.file_name)
                file_path = await self.storage.upload(
                    file.data, key, file.content_type or DEFAULT_FILE_TYPE
                )
                manifest.append(file_path)
                uploaded.append(UploadedFile(source=file, file_path=file_path))
        except StorageError:
            await self._compensate(manifest)
            raise
        except BaseException as e:
            await self._compensate(manifest)
            if isinstance(e, Exception):
                logger.error(f"Upload failed for {conversation_id}: {e}", exc_info=True)
                raise StorageError("Failed to upload attachments.") from e
            raise
        return uploaded

    async def _commit(
        self,
        conversation_id: UUID,
        sender_user: User,
        content: str,
        uploaded: Sequence[UploadedFile],
    ) -> UUID:
        now = utcnow()
        message = await self.msg_repo.create_message(
            content=content,
            conversation_id=conversation_id,
            sender_id=sender_user.id,
            created_at=now,
        )
        for item in uploaded:
            await self.att_repo.create_attachment(
                message_id=message.id,
                file_name=item.source.file_name,
                file_type=item.source.content_type or DEFAULT_FILE_TYPE,
                file_size=item.source.size,
                file_path=item.file_path,
            )
        await self.conv_repo.update_conversation_activity(conversation_id, now)
        await self.session.commit()
        return message.id

    async def _abort(self, manifest: list[str]) -> None:
        """Rolls back the transaction and removes the uploaded objects."""
        try:
            await self.session.rollback()
        except Exception as e:
            logger.error(f"Rollback failed while aborting attachment message: {e}")
        await self._compensate(manifest)

    async def _compensate(self, manifest: list[str]) -> None:
        if not manifest:
            return
        logger.info(f"Cleaning up {len(manifest)} uploaded file(s)")
        # Shielded so a cancelled request still finishes its cleanup.
        failed = await asyncio.shield(delete_stored_objects(self.storage, list(manifest)))
        if failed:
            logger.warning(f"{len(failed)} uploaded file(s) could not be removed: {failed}")
