from fastapi import Depends

from messaging.repositories.attachment_repository import AttachmentRepository
from messaging.repositories.conversation_repository import ConversationRepository
from messaging.repositories.dependencies import (
    get_attachment_repository,
    get_conversation_repository,
    get_message_repository,
    get_participant_repository,
    get_user_repository,
)
from messaging.repositories.message_repository import MessageRepository
from messaging.repositories.participant_repository import ParticipantRepository
from messaging.repositories.user_repository import UserRepository
from messaging.storage import StorageGateway, get_storage_gateway

from .attachment_service import AttachmentService
from .conversation_service import ConversationService
from .membership_service import MembershipService
from .message_service import MessageService
from .read_state_service import ReadStateService


def get_conversation_service(
    conv_repo: ConversationRepository = Depends(get_conversation_repository),
    part_repo: ParticipantRepository = Depends(get_participant_repository),
    user_repo: UserRepository = Depends(get_user_repository),
) -> ConversationService:
    """Provides an instance of the ConversationService with its dependencies."""
    return ConversationService(
        conversation_repository=conv_repo,
        participant_repository=part_repo,
        user_repository=user_repo,
    )


def get_message_service(
    msg_repo: MessageRepository = Depends(get_message_repository),
    conv_repo: ConversationRepository = Depends(get_conversation_repository),
    part_repo: ParticipantRepository = Depends(get_participant_repository),
    storage: StorageGateway = Depends(get_storage_gateway),
) -> MessageService:
    return MessageService(
        message_repository=msg_repo,
        conversation_repository=conv_repo,
        participant_repository=part_repo,
        storage=storage,
    )


def get_attachment_service(
    msg_repo: MessageRepository = Depends(get_message_repository),
    att_repo: AttachmentRepository = Depends(get_attachment_repository),
    conv_repo: ConversationRepository = Depends(get_conversation_repository),
    part_repo: ParticipantRepository = Depends(get_participant_repository),
    storage: StorageGateway = Depends(get_storage_gateway),
) -> AttachmentService:
    """Provides an instance of the AttachmentService."""
    return AttachmentService(
        message_repository=msg_repo,
        attachment_repository=att_repo,
        conversation_repository=conv_repo,
        participant_repository=part_repo,
        storage=storage,
    )


def get_read_state_service(
    part_repo: ParticipantRepository = Depends(get_participant_repository),
    conv_repo: ConversationRepository = Depends(get_conversation_repository),
) -> ReadStateService:
    return ReadStateService(
        participant_repository=part_repo,
        conversation_repository=conv_repo,
    )


def get_membership_service(
    part_repo: ParticipantRepository = Depends(get_participant_repository),
    conv_repo: ConversationRepository = Depends(get_conversation_repository),
    att_repo: AttachmentRepository = Depends(get_attachment_repository),
    storage: StorageGateway = Depends(get_storage_gateway),
) -> MembershipService:
    """Provides an instance of the MembershipService."""
    return MembershipService(
        participant_repository=part_repo,
        conversation_repository=conv_repo,
        attachment_repository=att_repo,
        storage=storage,
    )
