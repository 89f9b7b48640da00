import uuid
from sqlalchemy import (
    Column, String, DateTime, Boolean, ForeignKey, Index, CheckConstraint, Integer, Table, UniqueConstraint, text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .base import Base, now_utc


role_permissions = Table(
    'role_permissions',
    Base.metadata,
    Column('role_id', UUID(as_uuid=True), ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
    Column('permission_id', UUID(as_uuid=True), ForeignKey('permissions.id', ondelete='CASCADE'), primary_key=True),
)

role_members = Table(
    'role_members',
    Base.metadata,
    Column('role_id', UUID(as_uuid=True), ForeignKey('roles.id', ondelete='CASCADE'), primary_key=True),
    Column('member_id', UUID(as_uuid=True), ForeignKey('chat_members.id', ondelete='CASCADE'), primary_key=True),
)


class Permission(Base):
    __tablename__ = 'permissions'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=now_utc)


class Role(Base):
    __tablename__ = 'roles'
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    chat_id = Column(UUID(as_uuid=True), ForeignKey('chats.id', ondelete='CASCADE'), nullable=False)
    name = Column(String, nullable=False)
    # 1 is the highest rank; NULL for the default role (and transiently during a reorder)
    role_level = Column(Integer, nullable=True)
    is_default_role = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=now_utc)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    chat = relationship("Chat", back_populates="roles")
    permissions = relationship("Permission", secondary=role_permissions, lazy="selectin")
    members = relationship("ChatMember", secondary=role_members, back_populates="roles")

    __table_args__ = (
        UniqueConstraint('chat_id', 'role_level', name='uq_roles_chat_id_role_level'),
        CheckConstraint("NOT is_default_role OR role_level IS NULL", name='ck_roles_default_has_no_level'),
        Index('idx_roles_chat_id', 'chat_id'),
        Index(
            'uq_roles_one_default_per_chat', 'chat_id', unique=True,
            postgresql_where=text('is_default_role'), sqlite_where=text('is_default_role'),
        ),
    )
