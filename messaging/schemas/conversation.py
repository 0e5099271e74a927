from datetime import datetime
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, Field, RootModel

from messaging.models import ConversationKind

from .message import LastMessage
from .participant import ParticipantSummary


class DirectConversationCreateRequest(BaseModel):
    kind: Literal["direct"]
    invitee_user_id: str


class GroupConversationCreateRequest(BaseModel):
    kind: Literal["group"]
    member_ids: list[str]
    name: str | None = None


class ConversationCreateRequest(
    RootModel[
        Annotated[
            Union[DirectConversationCreateRequest, GroupConversationCreateRequest],
            Field(discriminator="kind"),
        ]
    ]
):
    """Create body, tagged by ``kind``: "direct" or "group"."""


class ConversationRenameRequest(BaseModel):
    name: str | None = None


class ConversationSummary(BaseModel):
    id: UUID
    kind: ConversationKind
    # Display name: the counterpart for DIRECT, stored name or fallback for GROUP
    name: str
    unread_count: int = 0
    last_message: LastMessage | None = None
    participants: list[ParticipantSummary]
    updated_at: datetime


class ConversationListResponse(BaseModel):
    conversations: list[ConversationSummary]


class ConversationCreateResponse(BaseModel):
    conversation: ConversationSummary
    created: bool


class ConversationRenameResponse(BaseModel):
    id: UUID
    name: str | None = None


class LeaveConversationResponse(BaseModel):
    conversation_id: UUID
    conversation_deleted: bool
