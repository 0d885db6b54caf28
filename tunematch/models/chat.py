"""Conversations between two matched users and their messages."""
from datetime import datetime
from typing import Tuple

import pytz
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from tunematch.db.session import Base


def utcnow() -> datetime:
    return datetime.now(pytz.UTC)


def participant_key(first: str, second: str) -> Tuple[str, str]:
    """Order a participant pair so (a, b) and (b, a) share one key."""
    return (first, second) if first <= second else (second, first)


class Conversation(Base):
    """A chat between exactly two participants, keyed by their unordered pair."""
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("participant_low", "participant_high", name="uq_conversations_participants"),
    )

    id = Column(Integer, primary_key=True)
    participant_low = Column(String(255), nullable=False, index=True)
    participant_high = Column(String(255), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    messages = relationship(
        "ChatMessage",
        back_populates="conversation",
        order_by="ChatMessage.id",
        lazy="noload",
    )

    @property
    def chat_id(self) -> str:
        return str(self.id)

    @property
    def participants(self) -> Tuple[str, str]:
        return (self.participant_low, self.participant_high)

    def has_participant(self, spotify_id: str) -> bool:
        return spotify_id in self.participants

    def __repr__(self):
        return f"<Conversation(id={self.id}, participants={self.participants})>"


class ChatMessage(Base):
    """A single immutable chat message; id order is append order."""
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    conversation = relationship("Conversation", back_populates="messages")

    def __repr__(self):
        return f"<ChatMessage(conversation_id={self.conversation_id}, sender_id={self.sender_id})>"
