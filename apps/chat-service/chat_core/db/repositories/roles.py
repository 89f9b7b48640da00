"""
Role repository functions.

Keeps each chat's ranked roles on the dense level range ``[1, N]`` (1 is the
highest rank) through insert, delete and reorder, together with the chat's
level counter. The default role never has a level.

Level mutations lock the chat's counter row first and run in one session
transaction. No authorization happens here; callers run the role policies
and make sure the ids they pass belong to the chat.
"""
from __future__ import annotations

import logging
import uuid
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chat_core.db import models
from chat_core.exceptions import RoleLevelRollbackError, RoleStoreError

logger = logging.getLogger(__name__)


def _coerce_uuid(val):
    if isinstance(val, uuid.UUID):
        return val
    try:
        return uuid.UUID(str(val))
    except (TypeError, ValueError):
        return None


def _lock_counter(db: Session, chat_id: uuid.UUID) -> models.RoleLevelCounter:
    counter = (
        db.query(models.RoleLevelCounter)
        .filter(models.RoleLevelCounter.chat_id == chat_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if counter is None:
        counter = models.RoleLevelCounter(chat_id=chat_id, last_level=0)
        db.add(counter)
        db.flush()
    return counter


def _ranked_roles(db: Session, chat_id: uuid.UUID) -> List[models.Role]:
    # Refresh rows already in the identity map; callers read these after taking the counter lock
    return (
        db.query(models.Role)
        .filter(models.Role.chat_id == chat_id, models.Role.is_default_role.is_(False))
        .order_by(models.Role.role_level.asc())
        .populate_existing()
        .all()
    )


def _permissions_by_ids(db: Session, permission_ids: Iterable) -> List[models.Permission]:
    ids = [pid for pid in (_coerce_uuid(p) for p in permission_ids) if pid is not None]
    if not ids:
        return []
    return db.query(models.Permission).filter(models.Permission.id.in_(ids)).all()


def _chat_members_by_user_ids(db: Session, chat_id: uuid.UUID, user_ids: Iterable) -> List[models.ChatMember]:
    ids = [uid for uid in (_coerce_uuid(u) for u in user_ids) if uid is not None]
    if not ids:
        return []
    return (
        db.query(models.ChatMember)
        .filter(models.ChatMember.chat_id == chat_id, models.ChatMember.user_id.in_(ids))
        .all()
    )


def _assign_levels(db: Session, roles: Sequence[models.Role], start: int) -> None:
    """Give ``roles`` consecutive levels from ``start`` in sequence order."""
    for offset, role in enumerate(roles):
        role.role_level = start + offset
    db.flush()


def _densify(db: Session, roles: Sequence[models.Role]) -> int:
    """Renumber ``roles`` (already in rank order) to 1..N; return how many moved."""
    moved = [(role, level) for level, role in enumerate(roles, start=1) if role.role_level != level]
    if not moved:
        return 0
    # (chat_id, role_level) is unique: clear first, then assign
    for role, _ in moved:
        role.role_level = None
    db.flush()
    for role, level in moved:
        role.role_level = level
    db.flush()
    return len(moved)


# Reads


def get_chat_role(db: Session, role_id: uuid.UUID, chat_id: uuid.UUID) -> Optional[models.Role]:
    return (
        db.query(models.Role)
        .filter(models.Role.id == role_id, models.Role.chat_id == chat_id)
        .first()
    )


def get_chat_roles(db: Session, chat_id: uuid.UUID) -> List[models.Role]:
    """All roles of a chat, highest rank first and the default role last."""
    return (
        db.query(models.Role)
        .filter(models.Role.chat_id == chat_id)
        .order_by(models.Role.is_default_role.asc(), models.Role.role_level.asc())
        .all()
    )


def get_chat_default_role(db: Session, chat_id: uuid.UUID) -> Optional[models.Role]:
    return (
        db.query(models.Role)
        .filter(models.Role.chat_id == chat_id, models.Role.is_default_role.is_(True))
        .first()
    )


def get_roles_by_ids(db: Session, chat_id: uuid.UUID, role_ids: Iterable) -> List[models.Role]:
    ids = [rid for rid in (_coerce_uuid(r) for r in role_ids) if rid is not None]
    if not ids:
        return []
    return (
        db.query(models.Role)
        .filter(models.Role.chat_id == chat_id, models.Role.id.in_(ids))
        .all()
    )


def get_member_roles(db: Session, chat_id: uuid.UUID, user_id: uuid.UUID) -> List[models.Role]:
    member = (
        db.query(models.ChatMember)
        .filter(models.ChatMember.chat_id == chat_id, models.ChatMember.user_id == user_id)
        .first()
    )
    if member is None:
        return []
    return sorted(member.roles, key=lambda r: (r.is_default_role, r.role_level or 0))


# Writes


def insert_role(
    db: Session,
    chat_id: uuid.UUID,
    name: str,
    *,
    is_default_role: bool = False,
    permission_ids: Iterable = (),
) -> models.Role:
    """Create a role; a ranked role is appended at level N + 1 (lowest rank)."""
    try:
        counter = _lock_counter(db, chat_id)
        if is_default_role:
            if get_chat_default_role(db, chat_id) is not None:
                db.rollback()
                raise RoleStoreError(f"Chat {chat_id} already has a default role")
            role_level = None
        else:
            count = (
                db.query(func.count(models.Role.id))
                .filter(models.Role.chat_id == chat_id, models.Role.is_default_role.is_(False))
                .scalar()
            ) or 0
            role_level = count + 1
            counter.last_level = role_level

        db_role = models.Role(
            chat_id=chat_id,
            name=name,
            role_level=role_level,
            is_default_role=is_default_role,
            permissions=_permissions_by_ids(db, permission_ids),
        )
        db.add(db_role)
        db.commit()
        db.refresh(db_role)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("role_insert_failed: chat_id=%s error=%s", chat_id, exc)
        raise RoleStoreError(f"Failed to insert role into chat {chat_id}") from exc

    logger.info(
        "role_insert: chat_id=%s role_id=%s role_level=%s default=%s",
        chat_id, db_role.id, db_role.role_level, is_default_role,
    )
    return db_role


def update_role_metadata(
    db: Session,
    role_id: uuid.UUID,
    *,
    name: Optional[str] = None,
    permission_ids: Optional[Iterable] = None,
) -> Optional[models.Role]:
    """Rename and/or replace the full permission grant set. Levels are untouched."""
    try:
        db_role = db.query(models.Role).filter(models.Role.id == role_id).first()
        if db_role is None:
            return None
        if name is not None:
            db_role.name = name
        if permission_ids is not None:
            db_role.permissions = _permissions_by_ids(db, permission_ids)
        db.commit()
        db.refresh(db_role)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("role_update_failed: role_id=%s error=%s", role_id, exc)
        raise RoleStoreError(f"Failed to update role {role_id}") from exc
    return db_role


def update_role_members(
    db: Session,
    role_id: uuid.UUID,
    chat_id: uuid.UUID,
    member_user_ids: Iterable,
) -> Optional[models.Role]:
    """Replace the role's members with the chat members among ``member_user_ids``."""
    try:
        db_role = get_chat_role(db, role_id, chat_id)
        if db_role is None:
            return None
        db_role.members = _chat_members_by_user_ids(db, chat_id, member_user_ids)
        db.commit()
        db.refresh(db_role)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("role_members_update_failed: role_id=%s error=%s", role_id, exc)
        raise RoleStoreError(f"Failed to update members of role {role_id}") from exc
    return db_role


def update_role_member(
    db: Session,
    role_id: uuid.UUID,
    chat_id: uuid.UUID,
    member_user_id: uuid.UUID,
) -> Optional[models.Role]:
    """Add one chat member to the role."""
    try:
        db_role = get_chat_role(db, role_id, chat_id)
        members = _chat_members_by_user_ids(db, chat_id, [member_user_id])
        if db_role is None or not members:
            return None
        if members[0] not in db_role.members:
            db_role.members.append(members[0])
        db.commit()
        db.refresh(db_role)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("role_member_add_failed: role_id=%s error=%s", role_id, exc)
        raise RoleStoreError(f"Failed to add member to role {role_id}") from exc
    return db_role


def remove_role_member(
    db: Session,
    role_id: uuid.UUID,
    chat_id: uuid.UUID,
    member_user_id: uuid.UUID,
) -> Optional[models.Role]:
    """Remove one chat member from the role."""
    try:
        db_role = get_chat_role(db, role_id, chat_id)
        members = _chat_members_by_user_ids(db, chat_id, [member_user_id])
        if db_role is None or not members:
            return None
        if members[0] in db_role.members:
            db_role.members.remove(members[0])
        db.commit()
        db.refresh(db_role)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("role_member_remove_failed: role_id=%s error=%s", role_id, exc)
        raise RoleStoreError(f"Failed to remove member from role {role_id}") from exc
    return db_role


def _restore_role_levels(
    db: Session,
    chat_id: uuid.UUID,
    snapshot: Dict[uuid.UUID, Tuple[Optional[int], object]],
) -> None:
    """Put every snapshotted role back on its level and updated_at.

    The rollback releases the counter lock, so it is taken again before
    anything is written. If the chat's ranked roles changed in between the
    snapshot no longer describes the chat and nothing is restored.
    """
    try:
        db.rollback()
        _lock_counter(db, chat_id)
        roles = _ranked_roles(db, chat_id)
        if {role.id for role in roles} != set(snapshot):
            db.rollback()
            logger.critical(
                "role_reorder_rollback_conflict: chat_id=%s snapshot=%d current=%d",
                chat_id, len(snapshot), len(roles),
            )
            raise RoleLevelRollbackError(
                f"Roles of chat {chat_id} changed during a failed reorder; run a role level audit"
            )
        for role in roles:
            role.role_level = None
        db.flush()
        for role in roles:
            role.role_level, role.updated_at = snapshot[role.id]
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.critical("role_reorder_rollback_failed: chat_id=%s error=%s", chat_id, exc)
        raise RoleLevelRollbackError(
            f"Could not restore role levels of chat {chat_id}; run a role level audit"
        ) from exc
    logger.warning("role_reorder_rolled_back: chat_id=%s roles=%d", chat_id, len(snapshot))


def reorder_role_levels(
    db: Session,
    chat_id: uuid.UUID,
    ordered_role_ids: Sequence,
) -> List[models.Role]:
    """Give the listed roles consecutive levels in the listed order.

    The listed roles occupy the start of the level span ``[min, max]`` they
    currently cover; unlisted roles inside that span follow them in their
    previous relative order and roles outside it keep their levels. On any
    failure every ranked role of the chat gets its previous level and
    ``updated_at`` back before the error is re-raised.

    Returns the listed roles ordered by their new level.
    """
    ordered_ids = list(dict.fromkeys(rid for rid in (_coerce_uuid(r) for r in ordered_role_ids) if rid is not None))
    if not ordered_ids:
        return []

    try:
        counter = _lock_counter(db, chat_id)
        ranked = _ranked_roles(db, chat_id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise RoleStoreError(f"Failed to load roles of chat {chat_id}") from exc

    snapshot = {role.id: (role.role_level, role.updated_at) for role in ranked}
    by_id = {role.id: role for role in ranked}
    selected = [by_id[rid] for rid in ordered_ids if rid in by_id]
    if not selected:
        db.rollback()
        return []

    levels = [role.role_level for role in selected]
    low, high = min(levels), max(levels)
    selected_ids = {role.id for role in selected}
    in_between = [
        role for role in ranked
        if role.role_level is not None
        and low <= role.role_level <= high
        and role.id not in selected_ids
    ]

    try:
        for role in selected + in_between:
            role.role_level = None
        db.flush()
        _assign_levels(db, selected, low)
        _assign_levels(db, in_between, low + len(selected))
        counter.last_level = len(ranked)
        db.commit()
    except Exception as exc:
        logger.error("role_reorder_failed: chat_id=%s error=%s", chat_id, exc)
        _restore_role_levels(db, chat_id, snapshot)
        if isinstance(exc, SQLAlchemyError):
            raise RoleStoreError(f"Failed to reorder roles of chat {chat_id}") from exc
        raise

    logger.info(
        "role_reorder: chat_id=%s span=%d-%d reordered=%d shifted=%d",
        chat_id, low, high, len(selected), len(in_between),
    )
    return sorted(selected, key=lambda role: role.role_level)


def delete_role(db: Session, role_id: uuid.UUID, chat_id: uuid.UUID) -> Optional[uuid.UUID]:
    """Delete a role and close the gap it leaves in the chat's levels."""
    try:
        counter = _lock_counter(db, chat_id)
        db_role = get_chat_role(db, role_id, chat_id)
        if db_role is None:
            db.rollback()
            return None
        deleted_level = db_role.role_level
        db.delete(db_role)
        db.flush()
        remaining = _ranked_roles(db, chat_id)
        shifted = _densify(db, remaining)
        counter.last_level = len(remaining)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("role_delete_failed: role_id=%s chat_id=%s error=%s", role_id, chat_id, exc)
        raise RoleStoreError(f"Failed to delete role {role_id}") from exc

    logger.info(
        "role_delete: chat_id=%s role_id=%s role_level=%s shifted=%d",
        chat_id, role_id, deleted_level, shifted,
    )
    return role_id


# Maintenance


def _rank_sort_key(role: models.Role):
    # NULL levels (left by a failed rollback) sort after ranked ones
    return (role.role_level is None, role.role_level or 0, role.created_at is None, role.created_at)


def audit_role_levels(db: Session, chat_id: Optional[uuid.UUID] = None) -> List[dict]:
    """Report chats whose ranked role levels are not exactly 1..N or whose counter disagrees."""
    chat_query = db.query(models.Chat.id)
    if chat_id is not None:
        chat_query = chat_query.filter(models.Chat.id == chat_id)

    anomalies = []
    for (cid,) in chat_query.all():
        ranked = _ranked_roles(db, cid)
        levels = [role.role_level for role in ranked if role.role_level is not None]
        counter = db.query(models.RoleLevelCounter).filter(models.RoleLevelCounter.chat_id == cid).first()
        expected = set(range(1, len(ranked) + 1))
        report = {
            "chat_id": str(cid),
            "role_count": len(ranked),
            "counter": counter.last_level if counter else None,
            "null_levels": len(ranked) - len(levels),
            "duplicate_levels": sorted({lvl for lvl in levels if levels.count(lvl) > 1}),
            "missing_levels": sorted(expected - set(levels)),
            "unexpected_levels": sorted(set(levels) - expected),
        }
        if (
            report["null_levels"]
            or report["duplicate_levels"]
            or report["missing_levels"]
            or report["unexpected_levels"]
            or report["counter"] != len(ranked)
        ):
            anomalies.append(report)
    return anomalies


def densify_role_levels(db: Session, chat_id: uuid.UUID) -> int:
    """Renumber a chat's ranked roles to 1..N in current order and sync the counter."""
    try:
        counter = _lock_counter(db, chat_id)
        ranked = sorted(_ranked_roles(db, chat_id), key=_rank_sort_key)
        moved = _densify(db, ranked)
        counter.last_level = len(ranked)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise RoleStoreError(f"Failed to densify role levels of chat {chat_id}") from exc
    logger.info("role_densify: chat_id=%s moved=%d", chat_id, moved)
    return moved
