"""
Authorization facade.

Each function loads the subjects a policy needs, evaluates the policy and,
when the verdict allows it, performs the repository call. Missing rows raise
``ResourceNotFound``; a negative verdict raises ``AuthorizationDenied``
carrying the verdict.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from chat_core.db import models, schemas
from chat_core.db.repositories import chats as chats_repo
from chat_core.db.repositories import roles as roles_repo
from chat_core.db.repositories import users as users_repo
from chat_core.exceptions import AuthorizationDenied, ResourceNotFound
from chat_core.policies import evaluate
from chat_core.policies.verdict import Verdict
from chat_core.services import loaders
from chat_core.subjects import ChatSubject, MemberSubject

logger = logging.getLogger(__name__)


def _enforce(verdict: Verdict, action: str, actor_id, chat_id) -> Verdict:
    if not verdict.allowed:
        logger.info(
            "authz_denied: action=%s actor_id=%s chat_id=%s code=%s reason=%s",
            action, actor_id, chat_id, verdict.code.value, verdict.reason,
        )
        raise AuthorizationDenied(verdict)
    logger.debug("authz_allowed: action=%s actor_id=%s chat_id=%s", action, actor_id, chat_id)
    return verdict


def _load_chat(db: Session, chat_id: uuid.UUID) -> Tuple[models.Chat, ChatSubject]:
    db_chat = chats_repo.get_chat(db, chat_id)
    if db_chat is None:
        raise ResourceNotFound("Chat not found")
    return db_chat, loaders.chat_subject(db, db_chat)


def _load_role(db: Session, chat_id: uuid.UUID, role_id: uuid.UUID) -> models.Role:
    db_role = roles_repo.get_chat_role(db, role_id, chat_id)
    if db_role is None:
        raise ResourceNotFound("Role not found")
    return db_role


def _load_target_member(db: Session, chat: ChatSubject, user_id: uuid.UUID) -> MemberSubject:
    if not chat.is_member(user_id):
        raise ResourceNotFound("Member not found")
    return loaders.member_subject(db, user_id, chat.id)


# Chats


def create_group_chat(db: Session, actor_id: uuid.UUID, payload: schemas.GroupChatCreate) -> models.Chat:
    actor = loaders.member_subject(db, actor_id, with_chat_counts=True)
    _enforce(evaluate(actor, None, resource="chat", action="create", field="group"), "chat.create.group", actor_id, None)
    return chats_repo.create_group_chat(db, payload, actor_id)


def create_direct_chat(db: Session, actor_id: uuid.UUID, payload: schemas.DirectChatCreate) -> models.Chat:
    if users_repo.get_user(db, payload.target_user_id) is None:
        raise ResourceNotFound("User not found")
    actor = loaders.member_subject(db, actor_id, with_chat_counts=True)
    target = loaders.member_subject(db, payload.target_user_id)
    existing = chats_repo.get_direct_chat_between(db, actor_id, payload.target_user_id)
    verdict = evaluate(actor, existing, resource="chat", action="create", field="direct",
                       context={"target_user": target})
    _enforce(verdict, "chat.create.direct", actor_id, None)
    return chats_repo.create_direct_chat(db, actor_id, payload.target_user_id)


# Roles


def create_chat_role(db: Session, actor_id: uuid.UUID, chat_id: uuid.UUID, payload: schemas.RoleCreate) -> models.Role:
    _, chat = _load_chat(db, chat_id)
    actor = loaders.member_subject(db, actor_id, chat_id)
    _enforce(evaluate(actor, chat, resource="role", action="create"), "role.create", actor_id, chat_id)
    return roles_repo.insert_role(db, chat_id, payload.name, permission_ids=payload.permission_ids)


def view_chat_roles(
    db: Session,
    actor_id: uuid.UUID,
    chat_id: uuid.UUID,
    target_user_id: Optional[uuid.UUID] = None,
) -> List[models.Role]:
    """All roles of the chat, or only the roles ``target_user_id`` holds."""
    _, chat = _load_chat(db, chat_id)
    actor = loaders.member_subject(db, actor_id, chat_id)
    context = {}
    if target_user_id is not None:
        context["target_user"] = loaders.member_subject(db, target_user_id, chat_id)
    _enforce(evaluate(actor, chat, resource="role", action="view", context=context), "role.view", actor_id, chat_id)
    if target_user_id is not None:
        return roles_repo.get_member_roles(db, chat_id, target_user_id)
    return roles_repo.get_chat_roles(db, chat_id)


def update_role_metadata(
    db: Session,
    actor_id: uuid.UUID,
    chat_id: uuid.UUID,
    role_id: uuid.UUID,
    payload: schemas.RoleMetadataUpdate,
) -> models.Role:
    _, chat = _load_chat(db, chat_id)
    db_role = _load_role(db, chat_id, role_id)
    actor = loaders.member_subject(db, actor_id, chat_id)
    context = {"target_role": loaders.role_subject(db_role), "fields": payload.changed_fields()}
    verdict = evaluate(actor, chat, resource="role", action="update", field="metadata", context=context)
    _enforce(verdict, "role.update.metadata", actor_id, chat_id)
    return roles_repo.update_role_metadata(db, role_id, name=payload.name, permission_ids=payload.permission_ids)


def update_role_members(
    db: Session,
    actor_id: uuid.UUID,
    chat_id: uuid.UUID,
    role_id: uuid.UUID,
    payload: schemas.RoleMembersUpdate,
) -> models.Role:
    """Replace the role's members; members dropped from the role count as demoted."""
    _, chat = _load_chat(db, chat_id)
    db_role = _load_role(db, chat_id, role_id)
    new_ids = set(payload.member_ids)
    if any(not chat.is_member(user_id) for user_id in new_ids):
        raise ResourceNotFound("One or more members not found in this chat")
    actor = loaders.member_subject(db, actor_id, chat_id)
    demoted = tuple(
        loaders.member_subject(db, member.user_id, chat_id)
        for member in db_role.members
        if member.user_id not in new_ids
    )
    context = {"target_role": loaders.role_subject(db_role), "demoted_members": demoted}
    verdict = evaluate(actor, chat, resource="role", action="update", field="members", context=context)
    _enforce(verdict, "role.update.members", actor_id, chat_id)
    return roles_repo.update_role_members(db, role_id, chat_id, payload.member_ids)


def add_role_member(
    db: Session,
    actor_id: uuid.UUID,
    chat_id: uuid.UUID,
    role_id: uuid.UUID,
    member_user_id: uuid.UUID,
) -> models.Role:
    _, chat = _load_chat(db, chat_id)
    db_role = _load_role(db, chat_id, role_id)
    _load_target_member(db, chat, member_user_id)
    actor = loaders.member_subject(db, actor_id, chat_id)
    context = {"target_role": loaders.role_subject(db_role), "demoted_members": ()}
    verdict = evaluate(actor, chat, resource="role", action="update", field="members", context=context)
    _enforce(verdict, "role.update.members", actor_id, chat_id)
    return roles_repo.update_role_member(db, role_id, chat_id, member_user_id)


def remove_role_member(
    db: Session,
    actor_id: uuid.UUID,
    chat_id: uuid.UUID,
    role_id: uuid.UUID,
    member_user_id: uuid.UUID,
) -> models.Role:
    _, chat = _load_chat(db, chat_id)
    db_role = _load_role(db, chat_id, role_id)
    target = _load_target_member(db, chat, member_user_id)
    actor = loaders.member_subject(db, actor_id, chat_id)
    context = {"target_role": loaders.role_subject(db_role), "demoted_members": (target,)}
    verdict = evaluate(actor, chat, resource="role", action="update", field="members", context=context)
    _enforce(verdict, "role.update.members", actor_id, chat_id)
    return roles_repo.remove_role_member(db, role_id, chat_id, member_user_id)


def reorder_roles(
    db: Session,
    actor_id: uuid.UUID,
    chat_id: uuid.UUID,
    payload: schemas.RoleLevelUpdate,
) -> List[models.Role]:
    """Move the listed roles to the top of the level span they cover, in listed order."""
    _, chat = _load_chat(db, chat_id)
    db_roles = roles_repo.get_roles_by_ids(db, chat_id, payload.role_ids)
    if len(db_roles) != len(payload.role_ids):
        raise ResourceNotFound("One or more roles not found in this chat")
    actor = loaders.member_subject(db, actor_id, chat_id)
    context = {"target_roles": [loaders.role_subject(role) for role in db_roles]}
    verdict = evaluate(actor, chat, resource="role", action="update", field="role_level", context=context)
    _enforce(verdict, "role.update.role_level", actor_id, chat_id)
    return roles_repo.reorder_role_levels(db, chat_id, payload.role_ids)


def delete_role(db: Session, actor_id: uuid.UUID, chat_id: uuid.UUID, role_id: uuid.UUID) -> uuid.UUID:
    _, chat = _load_chat(db, chat_id)
    db_role = _load_role(db, chat_id, role_id)
    actor = loaders.member_subject(db, actor_id, chat_id)
    verdict = evaluate(actor, chat, resource="role", action="delete",
                       context={"target_role": loaders.role_subject(db_role)})
    _enforce(verdict, "role.delete", actor_id, chat_id)
    return roles_repo.delete_role(db, role_id, chat_id)


# Members


def mute_member(
    db: Session,
    actor_id: uuid.UUID,
    chat_id: uuid.UUID,
    target_user_id: uuid.UUID,
    payload: schemas.MuteRequest,
) -> models.ChatMember:
    _, chat = _load_chat(db, chat_id)
    target = _load_target_member(db, chat, target_user_id)
    actor = loaders.member_subject(db, actor_id, chat_id)
    verdict = evaluate(actor, chat, resource="member", action="update", field="mute",
                       context={"target_user": target})
    _enforce(verdict, "member.update.mute", actor_id, chat_id)
    logger.info("member_mute: chat_id=%s user_id=%s muted_until=%s", chat_id, target_user_id, payload.muted_until)
    return chats_repo.set_muted_until(db, chat_id, target_user_id, payload.muted_until)


def unmute_member(db: Session, actor_id: uuid.UUID, chat_id: uuid.UUID, target_user_id: uuid.UUID) -> models.ChatMember:
    _, chat = _load_chat(db, chat_id)
    target = _load_target_member(db, chat, target_user_id)
    actor = loaders.member_subject(db, actor_id, chat_id)
    verdict = evaluate(actor, chat, resource="member", action="update", field="unmute",
                       context={"target_user": target})
    _enforce(verdict, "member.update.unmute", actor_id, chat_id)
    logger.info("member_unmute: chat_id=%s user_id=%s", chat_id, target_user_id)
    return chats_repo.set_muted_until(db, chat_id, target_user_id, None)


def kick_member(db: Session, actor_id: uuid.UUID, chat_id: uuid.UUID, target_user_id: uuid.UUID) -> bool:
    _, chat = _load_chat(db, chat_id)
    target = _load_target_member(db, chat, target_user_id)
    actor = loaders.member_subject(db, actor_id, chat_id)
    verdict = evaluate(actor, chat, resource="member", action="delete", field="kick",
                       context={"target_user": target})
    _enforce(verdict, "member.delete.kick", actor_id, chat_id)
    return chats_repo.remove_member(db, chat_id, target_user_id)


def join_chat(db: Session, actor_id: uuid.UUID, chat_id: uuid.UUID) -> models.ChatMember:
    _, chat = _load_chat(db, chat_id)
    actor = loaders.member_subject(db, actor_id, chat_id)
    _enforce(evaluate(actor, chat, resource="member", action="create", field="self"), "member.create.self", actor_id, chat_id)
    return chats_repo.add_member(db, chat_id, actor_id)


def leave_chat(db: Session, actor_id: uuid.UUID, chat_id: uuid.UUID) -> bool:
    _, chat = _load_chat(db, chat_id)
    actor = loaders.member_subject(db, actor_id, chat_id)
    _enforce(evaluate(actor, chat, resource="member", action="delete", field="self"), "member.delete.self", actor_id, chat_id)
    return chats_repo.remove_member(db, chat_id, actor_id)


# Messages


def authorize_message_send(
    db: Session,
    actor_id: uuid.UUID,
    chat_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> Verdict:
    """Check that ``actor_id`` may post in the chat; raises on denial, returns the verdict otherwise."""
    db_chat, chat = _load_chat(db, chat_id)
    actor = loaders.member_subject(db, actor_id, chat_id)
    if db_chat.type == models.CHAT_TYPE_DIRECT:
        other_ids = [user_id for user_id in chat.member_ids if user_id != actor_id]
        target = loaders.member_subject(db, other_ids[0], chat_id) if other_ids else MemberSubject(user_id=None)
        verdict = evaluate(actor, chat, resource="message", action="create", field="direct",
                           context={"target_user": target})
        return _enforce(verdict, "message.create.direct", actor_id, chat_id)
    verdict = evaluate(actor, chat, resource="message", action="create", field="group", context={"now": now})
    return _enforce(verdict, "message.create.group", actor_id, chat_id)
