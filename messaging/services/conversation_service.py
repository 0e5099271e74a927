import logging
from typing import Iterable
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from messaging.core.config import settings
from messaging.models import Conversation, ConversationKind, User
from messaging.repositories.conversation_repository import (
    ConversationRepository,
    make_direct_key,
)
from messaging.repositories.participant_repository import ParticipantRepository
from messaging.repositories.user_repository import UserRepository
from messaging.schemas.conversation import ConversationSummary

from .access import require_participant
from .exceptions import (
    ConversationNotFoundError,
    PersistenceError,
    ServiceError,
    ValidationError,
)
from .presenters import build_conversation_summary

logger = logging.getLogger(__name__)


def parse_user_id(raw: str | UUID) -> UUID:
    if isinstance(raw, UUID):
        return raw
    try:
        return UUID(str(raw))
    except ValueError:
        raise ValidationError(f"Invalid user ID format: '{raw}'.")


def normalize_group_name(name: str | None) -> str | None:
    """Trims a group name; blank values clear it."""
    if name is None:
        return None
    trimmed = name.strip()
    if not trimmed:
        return None
    if len(trimmed) > settings.MAX_GROUP_NAME_LENGTH:
        raise ValidationError(
            f"Group name cannot exceed {settings.MAX_GROUP_NAME_LENGTH} characters."
        )
    return trimmed


class ConversationService:
    def __init__(
        self,
        conversation_repository: ConversationRepository,
        participant_repository: ParticipantRepository,
        user_repository: UserRepository,
    ):
        self.conv_repo = conversation_repository
        self.part_repo = participant_repository
        self.user_repo = user_repository
        # The session is implicitly shared via the repositories
        self.session = conversation_repository.session

    async def list_conversations(self, user: User) -> list[ConversationSummary]:
        """Lists the user's conversations, newest activity first, with unread counts."""
        try:
            conversations = await self.conv_repo.list_user_conversations(user.id)
            ids = [conversation.id for conversation in conversations]
            unread_counts = await self.conv_repo.get_unread_counts(user.id, ids)
            last_messages = await self.conv_repo.get_last_messages(ids)
        except SQLAlchemyError as e:
            logger.error(
                f"Database error listing conversations for user {user.id}: {e}",
                exc_info=True,
            )
            raise PersistenceError("Failed to list conversations due to a database error.")

        return [
            build_conversation_summary(
                conversation,
                user.id,
                unread_count=unread_counts.get(conversation.id, 0),
                last_message=last_messages.get(conversation.id),
            )
            for conversation in conversations
        ]

    async def get_conversation(
        self, conversation_id: UUID, user: User
    ) -> ConversationSummary:
        """Summary of a single conversation the user participates in."""
        await require_participant(conversation_id, user, self.part_repo, self.conv_repo)
        conversation = await self.conv_repo.get_conversation_by_id(conversation_id)
        if not conversation:
            raise ConversationNotFoundError(
                f"Conversation with id '{conversation_id}' not found."
            )
        unread_counts = await self.conv_repo.get_unread_counts(user.id, [conversation.id])
        last_messages = await self.conv_repo.get_last_messages([conversation.id])
        return build_conversation_summary(
            conversation,
            user.id,
            unread_count=unread_counts.get(conversation.id, 0),
            last_message=last_messages.get(conversation.id),
        )

    async def create_or_get_direct(
        self, creator_user: User, other_user_id: str | UUID
    ) -> tuple[ConversationSummary, bool]:
        """
        Returns the direct conversation between the two users, creating it if needed.

        The second element of the result is True when a new conversation was created.
        Repeating the call, in either order of users, yields the same conversation.
        """
        creator_id = creator_user.id
        other_id = parse_user_id(other_user_id)
        if other_id == creator_id:
            raise ValidationError("Cannot create a conversation with yourself.")

        other_user = await self.user_repo.get_user_by_id(other_id)
        if not other_user:
            raise ValidationError(f"User with ID '{other_id}' not found.")

        direct_key = make_direct_key(creator_id, other_id)
        existing = await self.conv_repo.get_direct_conversation(direct_key)
        if existing:
            logger.info(f"Reusing direct conversation {existing.id}")
            return await self._summarize(existing, creator_id), False

        try:
            conversation = await self.conv_repo.create_conversation(
                ConversationKind.DIRECT,
                [creator_id, other_id],
                direct_key=direct_key,
            )
            await self.session.commit()
        except IntegrityError:
            # Another request created the same pair first; hand back its row.
            await self.session.rollback()
            existing = await self.conv_repo.get_direct_conversation(direct_key)
            if not existing:
                logger.error(
                    f"Integrity error creating direct conversation {direct_key} "
                    f"but no existing row was found",
                    exc_info=True,
                )
                raise PersistenceError("Could not create conversation.")
            logger.info(f"Lost creation race; reusing direct conversation {existing.id}")
            return await self._summarize(existing, creator_id), False
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Database error creating conversation: {e}", exc_info=True)
            raise PersistenceError(
                "Failed to create conversation due to a database error."
            )

        logger.info(
            f"Created direct conversation {conversation.id} between "
            f"{creator_id} and {other_id}"
        )
        return await self._summarize(conversation, creator_id), True

    async def create_group(
        self,
        creator_user: User,
        member_ids: Iterable[str | UUID],
        name: str | None = None,
    ) -> ConversationSummary:
        """Creates a GROUP conversation of the creator plus ``member_ids``."""
        creator_id = creator_user.id
        requested = [parse_user_id(member_id) for member_id in member_ids]
        if not requested:
            raise ValidationError("At least one participant is required.")

        group_name = normalize_group_name(name)

        other_ids = {member_id for member_id in requested if member_id != creator_id}
        found = await self.user_repo.get_users_by_ids(other_ids)
        missing = other_ids - {user.id for user in found}
        if missing:
            missing_str = ", ".join(sorted(str(user_id) for user_id in missing))
            raise ValidationError(f"One or more participants not found: {missing_str}")

        member_set = [creator_id] + sorted(other_ids, key=str)
        try:
            conversation = await self.conv_repo.create_conversation(
                ConversationKind.GROUP, member_set, name=group_name
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Database error creating group conversation: {e}", exc_info=True)
            raise PersistenceError(
                "Failed to create conversation due to a database error."
            )

        logger.info(
            f"Created group conversation {conversation.id} with {len(member_set)} participants"
        )
        return await self._summarize(conversation, creator_id)

    async def rename_group(
        self, conversation_id: UUID, user: User, name: str | None = None
    ) -> Conversation:
        """Sets or clears a GROUP conversation's name. DIRECT names are not settable."""
        await require_participant(conversation_id, user, self.part_repo, self.conv_repo)

        conversation = await self.conv_repo.get_conversation_by_id(conversation_id)
        if not conversation:
            raise ConversationNotFoundError(
                f"Conversation with id '{conversation_id}' not found."
            )
        if conversation.kind != ConversationKind.GROUP:
            raise ValidationError("Cannot rename a direct message conversation.")

        new_name = normalize_group_name(name)
        try:
            updated = await self.conv_repo.rename_conversation(conversation, new_name)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                f"Database error renaming conversation {conversation_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError("Failed to rename conversation due to a database error.")
        except Exception as e:
            await self.session.rollback()
            logger.error(
                f"Unexpected error renaming conversation {conversation_id}: {e}",
                exc_info=True,
            )
            raise ServiceError("An unexpected error occurred while renaming.")

        logger.info(f"Conversation {conversation_id} renamed by user {user.id}")
        return updated

    async def _summarize(
        self, conversation: Conversation, viewer_id: UUID
    ) -> ConversationSummary:
        loaded = await self.conv_repo.get_conversation_by_id(conversation.id)
        unread_counts = await self.conv_repo.get_unread_counts(viewer_id, [loaded.id])
        last_messages = await self.conv_repo.get_last_messages([loaded.id])
        return build_conversation_summary(
            loaded,
            viewer_id,
            unread_count=unread_counts.get(loaded.id, 0),
            last_message=last_messages.get(loaded.id),
        )
