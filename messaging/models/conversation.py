import enum

from sqlalchemy import Column, Enum as SQLAlchemyEnum, Index, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


class ConversationKind(str, enum.Enum):
    DIRECT = "DIRECT"
    GROUP = "GROUP"


class Conversation(BaseModel):
    __tablename__ = "conversations"

    # id, created_at, updated_at, deleted_at are inherited from BaseModel.
    # updated_at doubles as the activity timestamp used for ordering.
    kind = Column(SQLAlchemyEnum(ConversationKind), nullable=False)
    # GROUP only; DIRECT names are derived from the counterpart at read time
    name = Column(Text, nullable=True)
    # DIRECT only: "<smaller user id>:<larger user id>"
    direct_key = Column(Text, unique=True, nullable=True)

    participants = relationship(
        "Participant",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_conversations_updated_at", "updated_at"),)
