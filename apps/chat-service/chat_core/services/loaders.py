"""
Build the immutable policy subjects from ORM rows.

Policies never touch the session; everything they need (roles with their
permission names, membership, blocks, chat counts) is loaded here first.
"""
from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy.orm import Session

from chat_core.db import models
from chat_core.db.repositories import chats as chats_repo
from chat_core.db.repositories import users as users_repo
from chat_core.subjects import AnyRole, ChatSubject, DefaultRole, MemberSubject, RankedRole


def role_subject(role: models.Role) -> AnyRole:
    permissions = frozenset(permission.name for permission in role.permissions)
    if role.is_default_role:
        return DefaultRole(id=role.id, name=role.name, permissions=permissions)
    return RankedRole(id=role.id, name=role.name, level=role.role_level, permissions=permissions)


def chat_subject(db: Session, chat: models.Chat) -> ChatSubject:
    member_ids = db.query(models.ChatMember.user_id).filter(models.ChatMember.chat_id == chat.id).all()
    role_ids = db.query(models.Role.id).filter(models.Role.chat_id == chat.id).all()
    return ChatSubject(
        id=chat.id,
        owner_id=chat.owner_id,
        is_private=bool(chat.is_private),
        type=chat.type,
        member_ids=frozenset(row[0] for row in member_ids),
        role_ids=frozenset(row[0] for row in role_ids),
    )


def member_subject(
    db: Session,
    user_id: uuid.UUID,
    chat_id: Optional[uuid.UUID] = None,
    *,
    with_chat_counts: bool = False,
) -> MemberSubject:
    """Subject for ``user_id``; roles and mute state come from its membership of ``chat_id``, if any."""
    db_member = chats_repo.get_chat_member(db, chat_id, user_id) if chat_id is not None else None
    counts = chats_repo.count_user_chats(db, user_id) if with_chat_counts else {}
    return MemberSubject(
        user_id=user_id,
        roles=tuple(role_subject(role) for role in db_member.roles) if db_member else (),
        muted_until=db_member.muted_until if db_member else None,
        blocked_user_ids=frozenset(users_repo.get_blocked_user_ids(db, user_id)),
        direct_chat_count=counts.get(models.CHAT_TYPE_DIRECT, 0),
        group_chat_count=counts.get(models.CHAT_TYPE_GROUP, 0),
    )
