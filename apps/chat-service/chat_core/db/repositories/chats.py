"""
Chat repository functions.

Creates chats together with their level counter and ``everyone`` default
role, and manages memberships (join, leave, kick, mute).
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Dict, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chat_core.db import models, schemas
from chat_core.db.repositories import permissions as permissions_repo
from chat_core.db.repositories import roles as roles_repo
from chat_core.exceptions import RoleStoreError
from chat_core.utils.role_permissions import DEFAULT_PERMISSIONS, DEFAULT_ROLE_NAME

logger = logging.getLogger(__name__)


def _default_role(db: Session, chat_id: uuid.UUID) -> models.Role:
    permissions = permissions_repo.ensure_permissions(db, DEFAULT_PERMISSIONS, commit=False)
    db_role = models.Role(
        chat_id=chat_id,
        name=DEFAULT_ROLE_NAME,
        role_level=None,
        is_default_role=True,
        permissions=permissions,
    )
    db.add(db_role)
    return db_role


def _join(db: Session, chat: models.Chat, user_id: uuid.UUID, default_role: Optional[models.Role]) -> models.ChatMember:
    db_member = models.ChatMember(chat_id=chat.id, user_id=user_id)
    if default_role is not None:
        db_member.roles.append(default_role)
    db.add(db_member)
    return db_member


def _create_chat(db: Session, db_chat: models.Chat, member_ids: Sequence[uuid.UUID]) -> models.Chat:
    """Write the chat, its level counter, default role and members in one transaction."""
    chat_type = db_chat.type
    try:
        db.add(db_chat)
        db.flush()
        db.add(models.RoleLevelCounter(chat_id=db_chat.id, last_level=0))
        default_role = _default_role(db, db_chat.id)
        for user_id in member_ids:
            _join(db, db_chat, user_id, default_role)
        db.commit()
        db.refresh(db_chat)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("chat_create_failed: type=%s error=%s", chat_type, exc)
        raise RoleStoreError(f"Failed to create {chat_type} chat") from exc
    return db_chat


def create_group_chat(db: Session, chat: schemas.GroupChatCreate, owner_id: uuid.UUID) -> models.Chat:
    db_chat = models.Chat(
        name=chat.name,
        type=models.CHAT_TYPE_GROUP,
        owner_id=owner_id,
        is_private=chat.is_private,
    )
    _create_chat(db, db_chat, [owner_id])
    logger.info("chat_create: chat_id=%s type=group owner_id=%s", db_chat.id, owner_id)
    return db_chat


def create_direct_chat(db: Session, user_id: uuid.UUID, target_user_id: uuid.UUID) -> models.Chat:
    db_chat = models.Chat(type=models.CHAT_TYPE_DIRECT, is_private=True)
    _create_chat(db, db_chat, [user_id, target_user_id])
    logger.info("chat_create: chat_id=%s type=direct", db_chat.id)
    return db_chat


def get_chat(db: Session, chat_id: uuid.UUID) -> Optional[models.Chat]:
    return db.query(models.Chat).filter(models.Chat.id == chat_id).first()


def get_chat_member(db: Session, chat_id: uuid.UUID, user_id: uuid.UUID) -> Optional[models.ChatMember]:
    return (
        db.query(models.ChatMember)
        .filter(models.ChatMember.chat_id == chat_id, models.ChatMember.user_id == user_id)
        .first()
    )


def get_direct_chat_between(db: Session, user_a: uuid.UUID, user_b: uuid.UUID) -> Optional[models.Chat]:
    chat_ids_a = select(models.ChatMember.chat_id).where(models.ChatMember.user_id == user_a)
    return (
        db.query(models.Chat)
        .join(models.ChatMember, models.ChatMember.chat_id == models.Chat.id)
        .filter(
            models.Chat.type == models.CHAT_TYPE_DIRECT,
            models.ChatMember.user_id == user_b,
            models.Chat.id.in_(chat_ids_a),
        )
        .first()
    )


def count_user_chats(db: Session, user_id: uuid.UUID) -> Dict[str, int]:
    """Return ``{"direct": n, "group": m}`` for the chats ``user_id`` belongs to."""
    rows = (
        db.query(models.Chat.type, func.count(models.Chat.id))
        .join(models.ChatMember, models.ChatMember.chat_id == models.Chat.id)
        .filter(models.ChatMember.user_id == user_id)
        .group_by(models.Chat.type)
        .all()
    )
    counts = {models.CHAT_TYPE_DIRECT: 0, models.CHAT_TYPE_GROUP: 0}
    counts.update({chat_type: count for chat_type, count in rows})
    return counts


def add_member(db: Session, chat_id: uuid.UUID, user_id: uuid.UUID) -> models.ChatMember:
    """Add ``user_id`` to the chat holding the chat's default role."""
    db_chat = get_chat(db, chat_id)
    db_member = _join(db, db_chat, user_id, roles_repo.get_chat_default_role(db, chat_id))
    db.commit()
    db.refresh(db_member)
    logger.info("member_join: chat_id=%s user_id=%s", chat_id, user_id)
    return db_member


def remove_member(db: Session, chat_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    db_member = get_chat_member(db, chat_id, user_id)
    if db_member is None:
        return False
    db.delete(db_member)
    db.commit()
    logger.info("member_remove: chat_id=%s user_id=%s", chat_id, user_id)
    return True


def set_muted_until(
    db: Session,
    chat_id: uuid.UUID,
    user_id: uuid.UUID,
    muted_until: Optional[datetime],
) -> Optional[models.ChatMember]:
    db_member = get_chat_member(db, chat_id, user_id)
    if db_member is None:
        return None
    db_member.muted_until = muted_until
    db.commit()
    db.refresh(db_member)
    return db_member
