from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from sqlalchemy.types import Uuid

from .base import BaseModel


class Attachment(BaseModel):
    __tablename__ = "message_attachments"

    message_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Original name, for display only; never used as a storage path
    file_name = Column(Text, nullable=False)
    file_type = Column(Text, nullable=False)
    file_size = Column(Integer, nullable=False)
    # Opaque reference returned by the storage gateway
    file_path = Column(Text, nullable=False)

    message = relationship("Message", back_populates="attachments")

    __table_args__ = (
        CheckConstraint("file_size > 0", name="ck_attachment_file_size_positive"),
    )
