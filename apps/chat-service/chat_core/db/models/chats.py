import uuid
from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index, CheckConstraint, Integer, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import Base, now_utc

CHAT_TYPE_DIRECT = "direct"
CHAT_TYPE_GROUP = "group"


class Chat(Base):
    __tablename__ = 'chats'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=True)
    type = Column(String, nullable=False)  # 'direct'|'group'
    owner_id = Column(UUID(as_uuid=True), ForeignKey('users.id'), nullable=True)
    is_private = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    members = relationship("ChatMember", back_populates="chat", cascade="all, delete-orphan")
    roles = relationship("Role", back_populates="chat", cascade="all, delete-orphan")
    level_counter = relationship(
        "RoleLevelCounter", back_populates="chat", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("type in ('direct','group')", name='ck_chats_type'),
    )


class ChatMember(Base):
    """A user's membership of one chat."""
    __tablename__ = 'chat_members'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    chat_id = Column(UUID(as_uuid=True), ForeignKey('chats.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    muted_until = Column(DateTime(timezone=True), nullable=True)
    joined_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    chat = relationship("Chat", back_populates="members")
    user = relationship("User")
    roles = relationship("Role", secondary="role_members", back_populates="members")

    __table_args__ = (
        UniqueConstraint('chat_id', 'user_id', name='uq_chat_members_chat_id_user_id'),
        Index('idx_chat_members_user_id', 'user_id'),
    )


class RoleLevelCounter(Base):
    """Per-chat count of ranked roles; the next role is appended at last_level + 1."""
    __tablename__ = 'role_level_counters'
    chat_id = Column(UUID(as_uuid=True), ForeignKey('chats.id', ondelete='CASCADE'), primary_key=True)
    last_level = Column(Integer, nullable=False, default=0)

    chat = relationship("Chat", back_populates="level_counter")

    __table_args__ = (
        CheckConstraint("last_level >= 0", name='ck_role_level_counters_non_negative'),
    )
