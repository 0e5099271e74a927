from .attachment import Attachment
from .base import BaseModel, metadata
from .conversation import Conversation, ConversationKind
from .message import Message
from .participant import Participant
from .user import User

__all__ = [
    "BaseModel",
    "metadata",
    "User",
    "Conversation",
    "ConversationKind",
    "Message",
    "Participant",
    "Attachment",
]
