# Tests for AttachmentService: validation, upload-then-commit and compensation
import asyncio
import re
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from messaging.models import Attachment, Message, User
from messaging.services.attachment_service import (
    AttachmentService,
    IncomingFile,
    build_temp_key,
    default_caption,
    delete_stored_objects,
    sanitize_file_name,
)
from messaging.services.conversation_service import ConversationService
from messaging.services.exceptions import (
    ForbiddenError,
    PersistenceError,
    StorageError,
    ValidationError,
)
from test_helpers import RecordingStorage, database_failure, make_file

pytestmark = pytest.mark.asyncio

MB = 1024 * 1024


@pytest.fixture
async def direct_id(conversation_service: ConversationService, users: list[User]):
    alice, bob, _ = users
    summary, _ = await conversation_service.create_or_get_direct(alice, bob.id)
    return summary.id


async def count_rows(session: AsyncSession, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


async def test_two_files_without_text_get_a_caption(
    attachment_service: AttachmentService,
    storage: RecordingStorage,
    users: list[User],
    direct_id: uuid.UUID,
):
    alice = users[0]
    files = [
        make_file("report.pdf", "application/pdf", size=3 * MB),
        make_file("chart.png", "image/png", size=1 * MB),
    ]

    message = await attachment_service.send_with_attachments(
        direct_id, alice, files, content="   "
    )

    assert message.content == "📎 2 files"
    assert [a.file_name for a in message.attachments] == ["report.pdf", "chart.png"]
    assert [a.file_size for a in message.attachments] == [3 * MB, 1 * MB]
    for attachment, stored_path in zip(message.attachments, storage.uploaded):
        assert attachment.download_url == f"https://files.test/{stored_path}?ttl=3600"
    assert storage.deleted == []


async def test_single_file_caption_and_explicit_content(
    attachment_service: AttachmentService, users: list[User], direct_id: uuid.UUID
):
    alice = users[0]
    captioned = await attachment_service.send_with_attachments(
        direct_id, alice, [make_file("notes.txt", "text/plain")]
    )
    assert captioned.content == "📎 notes.txt"

    with_text = await attachment_service.send_with_attachments(
        direct_id, alice, [make_file("notes.txt", "text/plain")], content=" see this "
    )
    assert with_text.content == "see this"


async def test_unknown_type_is_stored_as_binary(
    attachment_service: AttachmentService, users: list[User], direct_id: uuid.UUID
):
    message = await attachment_service.send_with_attachments(
        direct_id, users[0], [make_file("data.csv", None)]
    )
    assert message.attachments[0].file_type == "application/octet-stream"


async def test_sixth_file_is_rejected_before_any_upload(
    attachment_service: AttachmentService,
    storage: RecordingStorage,
    db_session: AsyncSession,
    users: list[User],
    direct_id: uuid.UUID,
):
    files = [make_file(f"file{index}.pdf") for index in range(6)]

    with pytest.raises(ValidationError, match="Maximum 5 files"):
        await attachment_service.send_with_attachments(direct_id, users[0], files)

    assert storage.uploaded == []
    assert await count_rows(db_session, Message) == 0


async def test_no_files_is_rejected(
    attachment_service: AttachmentService, users: list[User], direct_id: uuid.UUID
):
    with pytest.raises(ValidationError):
        await attachment_service.send_with_attachments(direct_id, users[0], [])


@pytest.mark.parametrize(
    "incoming, reason",
    [
        (IncomingFile("empty.pdf", "application/pdf", b""), "empty"),
        (
            IncomingFile("huge.pdf", "application/pdf", b"x" * (10 * MB + 1)),
            "exceeds 10MB",
        ),
        (
            IncomingFile("setup.exe", "application/x-msdownload", b"MZ"),
            "not allowed",
        ),
        (IncomingFile("../secret.pdf", "application/pdf", b"x"), "Invalid file name"),
        (IncomingFile("dir/a.pdf", "application/pdf", b"x"), "Invalid file name"),
        (IncomingFile("", "application/pdf", b"x"), "Invalid file name"),
        (IncomingFile("a" * 252 + ".pdf", "application/pdf", b"x"), "Invalid file name"),
        (IncomingFile(".", "application/pdf", b"x"), "sanitization"),
    ],
)
async def test_invalid_files_are_rejected_and_named(
    attachment_service: AttachmentService,
    storage: RecordingStorage,
    users: list[User],
    direct_id: uuid.UUID,
    incoming: IncomingFile,
    reason: str,
):
    files = [make_file("fine.pdf"), incoming]

    with pytest.raises(ValidationError, match=reason) as exc_info:
        await attachment_service.send_with_attachments(direct_id, users[0], files)

    assert f'"{incoming.file_name}"' in exc_info.value.message
    assert storage.uploaded == []


async def test_extension_allows_unlisted_mime_type(
    attachment_service: AttachmentService, users: list[User], direct_id: uuid.UUID
):
    message = await attachment_service.send_with_attachments(
        direct_id, users[0], [make_file("clip.mov", "application/x-unknown")]
    )
    assert message.attachments[0].file_type == "application/x-unknown"


async def test_overlong_content_is_rejected(
    attachment_service: AttachmentService,
    storage: RecordingStorage,
    users: list[User],
    direct_id: uuid.UUID,
):
    with pytest.raises(ValidationError):
        await attachment_service.send_with_attachments(
            direct_id, users[0], [make_file()], content="x" * 5001
        )
    assert storage.uploaded == []


async def test_non_member_cannot_upload(
    attachment_service: AttachmentService,
    storage: RecordingStorage,
    users: list[User],
    direct_id: uuid.UUID,
):
    carol = users[2]
    with pytest.raises(ForbiddenError):
        await attachment_service.send_with_attachments(direct_id, carol, [make_file()])
    assert storage.uploaded == []


async def test_upload_failure_removes_files_already_uploaded(
    attachment_service: AttachmentService,
    storage: RecordingStorage,
    db_session: AsyncSession,
    users: list[User],
    direct_id: uuid.UUID,
):
    storage.fail_upload_at = 2
    files = [make_file(f"part{index}.pdf") for index in range(4)]

    with pytest.raises(StorageError):
        await attachment_service.send_with_attachments(direct_id, users[0], files)

    assert len(storage.uploaded) == 2
    assert storage.deleted == storage.uploaded
    assert storage.objects == {}
    assert await count_rows(db_session, Message) == 0


async def test_commit_failure_rolls_back_and_deletes_every_upload(
    attachment_service: AttachmentService,
    storage: RecordingStorage,
    db_session: AsyncSession,
    users: list[User],
    direct_id: uuid.UUID,
    monkeypatch: pytest.MonkeyPatch,
):
    """No message or attachment survives a failed commit, and every blob is deleted."""
    files = [make_file(f"doc{index}.pdf") for index in range(3)]

    async def failing_commit():
        raise database_failure()

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(PersistenceError) as exc_info:
        await attachment_service.send_with_attachments(direct_id, users[0], files)

    monkeypatch.undo()
    assert exc_info.value.__cause__ is not None
    assert len(storage.uploaded) == 3
    assert sorted(storage.deleted) == sorted(storage.uploaded)
    assert await count_rows(db_session, Message) == 0
    assert await count_rows(db_session, Attachment) == 0


async def test_cleanup_failures_do_not_replace_the_original_error(
    attachment_service: AttachmentService,
    storage: RecordingStorage,
    db_session: AsyncSession,
    users: list[User],
    direct_id: uuid.UUID,
    monkeypatch: pytest.MonkeyPatch,
):
    storage.fail_deletes = True
    files = [make_file("a.pdf"), make_file("b.pdf")]

    async def failing_commit():
        raise database_failure()

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(PersistenceError):
        await attachment_service.send_with_attachments(direct_id, users[0], files)

    # Every delete is still attempted after the first one fails
    assert sorted(storage.deleted) == sorted(storage.uploaded)


async def test_cancellation_before_commit_still_compensates(
    attachment_service: AttachmentService,
    storage: RecordingStorage,
    db_session: AsyncSession,
    users: list[User],
    direct_id: uuid.UUID,
    monkeypatch: pytest.MonkeyPatch,
):
    async def cancelled_commit():
        raise asyncio.CancelledError()

    monkeypatch.setattr(db_session, "commit", cancelled_commit)

    with pytest.raises(asyncio.CancelledError):
        await attachment_service.send_with_attachments(
            direct_id, users[0], [make_file("a.pdf"), make_file("b.png", "image/png")]
        )

    monkeypatch.undo()
    assert sorted(storage.deleted) == sorted(storage.uploaded)
    assert await count_rows(db_session, Message) == 0


async def test_temp_key_layout(direct_id: uuid.UUID):
    key = build_temp_key(direct_id, "Quarterly report (final).pdf")
    assert re.fullmatch(
        rf"messages/{direct_id}/temp/\d+-[0-9a-f]{{8}}-Quarterly_report__final_\.pdf",
        key,
    )


@pytest.mark.parametrize(
    "name, expected",
    [
        ("photo.jpg", "photo.jpg"),
        ("my photo #1.jpg", "my_photo__1.jpg"),
        (".hidden.txt.", "hidden.txt"),
        ("a" * 250 + ".pdf", "a" * 200),
    ],
)
async def test_sanitize_file_name(name: str, expected: str):
    assert sanitize_file_name(name) == expected


async def test_default_caption():
    assert default_caption([make_file("a.pdf")]) == "📎 a.pdf"
    assert default_caption([make_file("a.pdf"), make_file("b.pdf")]) == "📎 2 files"


async def test_delete_stored_objects_skips_inline_references(storage: RecordingStorage):
    failed = await delete_stored_objects(
        storage, ["data:text/plain;base64,aGk=", "messages/x/temp/1-a-b.txt"]
    )
    assert failed == []
    assert storage.deleted == ["messages/x/temp/1-a-b.txt"]
