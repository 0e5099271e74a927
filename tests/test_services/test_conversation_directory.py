# Tests for ConversationService: direct/group creation, listing, renaming
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from messaging.models import Conversation, ConversationKind, Participant, User
from messaging.services.conversation_service import ConversationService
from messaging.services.exceptions import (
    ConversationNotFoundError,
    ForbiddenError,
    ValidationError,
)
from messaging.services.message_service import MessageService

pytestmark = pytest.mark.asyncio


async def count_rows(session: AsyncSession, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


async def test_create_direct_is_idempotent_in_either_order(
    conversation_service: ConversationService,
    db_session: AsyncSession,
    users: list[User],
):
    """Creating A-B and then B-A yields one conversation with two participants."""
    alice, bob, _ = users

    first, created_first = await conversation_service.create_or_get_direct(alice, bob.id)
    again, created_again = await conversation_service.create_or_get_direct(alice, bob.id)
    reverse, created_reverse = await conversation_service.create_or_get_direct(
        bob, str(alice.id)
    )

    assert created_first is True
    assert created_again is False
    assert created_reverse is False
    assert first.id == again.id == reverse.id
    assert first.kind == ConversationKind.DIRECT
    assert await count_rows(db_session, Conversation) == 1
    assert await count_rows(db_session, Participant) == 2


async def test_direct_display_name_is_the_counterpart(
    conversation_service: ConversationService, users: list[User]
):
    alice, bob, _ = users
    summary, _ = await conversation_service.create_or_get_direct(alice, bob.id)
    assert summary.name == "bob"

    from_bob, _ = await conversation_service.create_or_get_direct(bob, alice.id)
    assert from_bob.name == "alice"
    assert {p.username for p in from_bob.participants} == {"alice", "bob"}


@pytest.mark.parametrize("other", ["not-a-uuid", str(uuid.uuid4())])
async def test_create_direct_rejects_bad_counterpart(
    conversation_service: ConversationService, users: list[User], other: str
):
    alice = users[0]
    with pytest.raises(ValidationError):
        await conversation_service.create_or_get_direct(alice, other)


async def test_create_direct_with_self_is_rejected(
    conversation_service: ConversationService, users: list[User]
):
    alice = users[0]
    with pytest.raises(ValidationError, match="yourself"):
        await conversation_service.create_or_get_direct(alice, alice.id)


async def test_create_direct_recovers_when_pair_was_inserted_concurrently(
    conversation_service: ConversationService,
    db_session: AsyncSession,
    users: list[User],
    monkeypatch: pytest.MonkeyPatch,
):
    """A unique-key collision returns the conversation that won the race."""
    alice, bob, _ = users
    winner, _ = await conversation_service.create_or_get_direct(bob, alice.id)

    original_lookup = conversation_service.conv_repo.get_direct_conversation
    calls = []

    async def stale_lookup(direct_key):
        calls.append(direct_key)
        if len(calls) == 1:
            return None
        return await original_lookup(direct_key)

    monkeypatch.setattr(
        conversation_service.conv_repo, "get_direct_conversation", stale_lookup
    )

    summary, created = await conversation_service.create_or_get_direct(alice, bob.id)

    assert created is False
    assert summary.id == winner.id
    assert len(calls) == 2
    assert await count_rows(db_session, Conversation) == 1


async def test_create_group_includes_creator_and_collapses_duplicates(
    conversation_service: ConversationService, users: list[User]
):
    alice, bob, carol = users
    summary = await conversation_service.create_group(
        alice, [bob.id, str(bob.id), carol.id, alice.id], name="  Launch  "
    )

    assert summary.kind == ConversationKind.GROUP
    assert summary.name == "Launch"
    assert sorted(p.username for p in summary.participants) == ["alice", "bob", "carol"]


async def test_create_group_without_name_uses_fallback(
    conversation_service: ConversationService, users: list[User]
):
    alice, bob, _ = users
    summary = await conversation_service.create_group(alice, [bob.id], name="   ")
    assert summary.name == "Group Chat"


async def test_create_group_requires_members(
    conversation_service: ConversationService, users: list[User]
):
    with pytest.raises(ValidationError):
        await conversation_service.create_group(users[0], [])


async def test_create_group_rejects_unknown_member(
    conversation_service: ConversationService,
    db_session: AsyncSession,
    users: list[User],
):
    alice, bob, _ = users
    ghost = uuid.uuid4()
    with pytest.raises(ValidationError, match=str(ghost)):
        await conversation_service.create_group(alice, [bob.id, ghost])
    assert await count_rows(db_session, Conversation) == 0


async def test_list_orders_by_latest_activity(
    conversation_service: ConversationService,
    message_service: MessageService,
    users: list[User],
):
    alice, bob, carol = users
    with_bob, _ = await conversation_service.create_or_get_direct(alice, bob.id)
    with_carol, _ = await conversation_service.create_or_get_direct(alice, carol.id)

    listed = await conversation_service.list_conversations(alice)
    assert [c.id for c in listed] == [with_carol.id, with_bob.id]

    await message_service.send_text(with_bob.id, bob, "ping")

    listed = await conversation_service.list_conversations(alice)
    assert [c.id for c in listed] == [with_bob.id, with_carol.id]
    assert listed[0].last_message.content == "ping"
    assert listed[0].last_message.sender.username == "bob"
    assert listed[1].last_message is None


async def test_list_only_contains_own_conversations(
    conversation_service: ConversationService, users: list[User]
):
    alice, bob, carol = users
    await conversation_service.create_or_get_direct(alice, bob.id)

    assert await conversation_service.list_conversations(carol) == []


async def test_get_conversation_for_non_member_is_forbidden(
    conversation_service: ConversationService, users: list[User]
):
    alice, bob, carol = users
    summary, _ = await conversation_service.create_or_get_direct(alice, bob.id)

    with pytest.raises(ForbiddenError):
        await conversation_service.get_conversation(summary.id, carol)
    with pytest.raises(ConversationNotFoundError):
        await conversation_service.get_conversation(uuid.uuid4(), alice)


async def test_rename_group_trims_and_clears(
    conversation_service: ConversationService, users: list[User]
):
    alice, bob, _ = users
    group = await conversation_service.create_group(alice, [bob.id], name="Old")

    renamed = await conversation_service.rename_group(group.id, bob, "  New name ")
    assert renamed.name == "New name"

    cleared = await conversation_service.rename_group(group.id, alice, "   ")
    assert cleared.name is None

    summary = await conversation_service.get_conversation(group.id, alice)
    assert summary.name == "Group Chat"


async def test_rename_does_not_change_activity_order(
    conversation_service: ConversationService, users: list[User]
):
    alice, bob, carol = users
    older = await conversation_service.create_group(alice, [bob.id], name="older")
    newer = await conversation_service.create_group(alice, [carol.id], name="newer")

    await conversation_service.rename_group(older.id, alice, "renamed")

    listed = await conversation_service.list_conversations(alice)
    assert [c.id for c in listed] == [newer.id, older.id]
    assert listed[1].updated_at == older.updated_at


async def test_rename_direct_conversation_is_rejected(
    conversation_service: ConversationService, users: list[User]
):
    alice, bob, _ = users
    direct, _ = await conversation_service.create_or_get_direct(alice, bob.id)

    with pytest.raises(ValidationError, match="direct"):
        await conversation_service.rename_group(direct.id, alice, "Nope")


async def test_rename_rejects_overlong_name(
    conversation_service: ConversationService, users: list[User]
):
    alice, bob, _ = users
    group = await conversation_service.create_group(alice, [bob.id])

    with pytest.raises(ValidationError):
        await conversation_service.rename_group(group.id, alice, "x" * 101)

    renamed = await conversation_service.rename_group(group.id, alice, "x" * 100)
    assert renamed.name == "x" * 100


async def test_rename_requires_membership(
    conversation_service: ConversationService, users: list[User]
):
    alice, bob, carol = users
    group = await conversation_service.create_group(alice, [bob.id])

    with pytest.raises(ForbiddenError):
        await conversation_service.rename_group(group.id, carol, "Mine now")
    with pytest.raises(ConversationNotFoundError):
        await conversation_service.rename_group(uuid.uuid4(), alice, "Nothing")
