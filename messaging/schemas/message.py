import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict


class MessageCreateRequest(BaseModel):
    content: str


class SenderSummary(BaseModel):
    id: uuid.UUID
    username: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class AttachmentResponse(BaseModel):
    id: uuid.UUID
    file_name: str
    file_type: str
    file_size: int
    # Short-lived access URL; the stored path itself is never exposed
    download_url: str | None = None
    created_at: datetime


class MessageResponse(BaseModel):
    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: uuid.UUID
    sender: SenderSummary | None = None
    content: str
    created_at: datetime
    attachments: list[AttachmentResponse] = []


class LastMessage(BaseModel):
    id: uuid.UUID
    content: str
    sender: SenderSummary | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaginationMeta(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class MessagePage(BaseModel):
    messages: list[MessageResponse]
    pagination: PaginationMeta


class MessageEnvelope(BaseModel):
    message: MessageResponse


class MarkReadResponse(BaseModel):
    success: bool = True
    message: str = "Conversation marked as read"
    last_read_at: datetime | None = None
