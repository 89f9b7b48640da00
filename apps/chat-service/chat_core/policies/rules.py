"""
Rank-gated action rules.

Each guarded action that compares the actor against a target (a member or
one or more roles) is described by an ``ActionRule``; ``check_rank_rule``
runs the shared decision sequence:

1. membership gate (owner always passes)
2. absolute guards (apply to the owner too)
3. owner short-circuit
4. owner-only guards
5. raw rank comparison
6. permission-gated rank comparison: only roles granting a required
   permission count towards the actor's level
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

from chat_core.policies.verdict import Verdict, allow, forbid, not_found
from chat_core.subjects import ChatSubject, DefaultRole, MemberSubject
from chat_core.utils.ranks import (
    chat_roles_of,
    highest_role_level,
    is_admin,
    role_rank,
    roles_with_permission,
)
from chat_core.utils.role_permissions import describe_permissions, get_required_permissions

Guard = Callable[[MemberSubject, ChatSubject, Sequence[Any], Mapping[str, Any]], Optional[str]]


class RankVariant(str, Enum):
    # Strictly higher raw rank is enough; equal rank falls through to the permission check
    RAW_RANK_BYPASS = "raw_rank_bypass"
    # A role holding the required permission must itself out-rank the target
    PERMISSION_GATED = "permission_gated"


@dataclass(frozen=True)
class ActionRule:
    required_permissions: frozenset
    variant: RankVariant
    target_level: Callable[[Any, ChatSubject], float]
    member_reason: str
    owner_reason: str
    outranked_reason: str
    granted_reason: str
    higher_rank_reason: str = ""
    bypass_reason: str = ""
    absolute_guards: Tuple[Guard, ...] = ()
    owner_only_guards: Tuple[Guard, ...] = ()
    check_raw_rank: bool = True


def membership_gate(actor: MemberSubject, chat: ChatSubject, member_reason: str) -> Optional[Verdict]:
    """Deny non-members; private chats answer not_found so their existence does not leak."""
    if chat.is_owner(actor.user_id) or chat.is_member(actor.user_id):
        return None
    if chat.is_private:
        return not_found()
    return forbid(member_reason)


def check_rank_rule(
    rule: ActionRule,
    actor: MemberSubject,
    chat: ChatSubject,
    targets: Sequence[Any],
    context: Optional[Mapping[str, Any]] = None,
) -> Verdict:
    context = context or {}

    denied = membership_gate(actor, chat, rule.member_reason)
    if denied is not None:
        return denied

    for guard in rule.absolute_guards:
        reason = guard(actor, chat, targets, context)
        if reason:
            return forbid(reason)

    if chat.is_owner(actor.user_id):
        return allow(rule.owner_reason)

    for guard in rule.owner_only_guards:
        reason = guard(actor, chat, targets, context)
        if reason:
            return forbid(reason)

    actor_roles = chat_roles_of(actor, chat)
    actor_level = highest_role_level(actor_roles)
    target_levels = [rule.target_level(target, chat) for target in targets]

    if rule.variant is RankVariant.RAW_RANK_BYPASS:
        if any(actor_level > level for level in target_levels):
            return forbid(rule.higher_rank_reason)
        if target_levels and all(actor_level < level for level in target_levels):
            return allow(rule.bypass_reason)
    elif rule.check_raw_rank and any(actor_level >= level for level in target_levels):
        return forbid(rule.outranked_reason)

    permitted_roles = roles_with_permission(actor_roles, rule.required_permissions)
    if not permitted_roles:
        return forbid(f"Missing permission: {describe_permissions(rule.required_permissions)}")

    permitted_level = highest_role_level(permitted_roles)
    if any(permitted_level >= level for level in target_levels):
        return forbid(rule.outranked_reason)

    return allow(rule.granted_reason)


def member_level(member: MemberSubject, chat: ChatSubject) -> float:
    return highest_role_level(chat_roles_of(member, chat))


def single_role_level(role, chat: ChatSubject) -> float:
    return role_rank(role)


# Guards


def _target_is_owner(verb: str) -> Guard:
    def guard(actor, chat, targets, context):
        if any(chat.is_owner(target.user_id) for target in targets):
            return f"You cannot {verb} the chat owner"
        return None
    return guard


def _target_is_admin(verb: str) -> Guard:
    def guard(actor, chat, targets, context):
        if any(is_admin(chat_roles_of(target, chat)) for target in targets):
            return f"You cannot {verb} an admin member"
        return None
    return guard


def _renames_default_role(actor, chat, targets, context):
    if "name" in (context.get("fields") or ()) and any(isinstance(t, DefaultRole) for t in targets):
        return "You cannot update the name of a default role"
    return None


def _default_role_target(reason: str) -> Guard:
    def guard(actor, chat, targets, context):
        if any(isinstance(target, DefaultRole) for target in targets):
            return reason
        return None
    return guard


def _demotes_admin(actor, chat, targets, context):
    if any(is_admin(chat_roles_of(member, chat)) for member in context.get("demoted_members") or ()):
        return "You cannot remove an admin member from a role"
    return None


RULES: Dict[Tuple[str, str], ActionRule] = {
    ("member", "mute"): ActionRule(
        required_permissions=get_required_permissions("member", "mute"),
        variant=RankVariant.RAW_RANK_BYPASS,
        target_level=member_level,
        member_reason="You must be a chat member to mute others",
        owner_reason="Chat owner can mute any member",
        higher_rank_reason="You cannot mute a member with higher role level",
        bypass_reason="User has higher rank; mute allowed",
        outranked_reason="You cannot mute a member with higher or equal role level",
        granted_reason="Permission granted to mute member",
        absolute_guards=(_target_is_owner("mute"), _target_is_admin("mute")),
    ),
    ("member", "unmute"): ActionRule(
        required_permissions=get_required_permissions("member", "unmute"),
        variant=RankVariant.RAW_RANK_BYPASS,
        target_level=member_level,
        member_reason="You must be a chat member to unmute others",
        owner_reason="Chat owner can unmute any member",
        higher_rank_reason="You cannot unmute a member with higher role level",
        bypass_reason="User outranks target; unmute allowed",
        outranked_reason="You cannot unmute a member with higher or equal role level",
        granted_reason="Permission granted to unmute member",
        absolute_guards=(_target_is_owner("unmute"), _target_is_admin("unmute")),
    ),
    ("member", "kick"): ActionRule(
        required_permissions=get_required_permissions("member", "kick"),
        variant=RankVariant.PERMISSION_GATED,
        target_level=member_level,
        member_reason="You must be a chat member to kick others",
        owner_reason="Chat owner can kick any member",
        outranked_reason="You cannot kick a member with higher or equal role level",
        granted_reason="Permission granted to kick member",
        absolute_guards=(_target_is_owner("kick"),),
        owner_only_guards=(_target_is_admin("kick"),),
    ),
    ("role", "update.metadata"): ActionRule(
        required_permissions=get_required_permissions("role", "update"),
        variant=RankVariant.PERMISSION_GATED,
        target_level=single_role_level,
        member_reason="You must be a chat member to update roles",
        owner_reason="Chat owner can update roles",
        outranked_reason="You cannot update a role of a higher or equal role level",
        granted_reason="Update permission granted",
        absolute_guards=(_renames_default_role,),
    ),
    ("role", "update.members"): ActionRule(
        required_permissions=get_required_permissions("role", "update"),
        variant=RankVariant.PERMISSION_GATED,
        target_level=single_role_level,
        member_reason="You must be a chat member to update roles",
        owner_reason="Chat owner can update roles",
        outranked_reason="You cannot update members of a higher or equal role level",
        granted_reason="Update permission granted",
        absolute_guards=(_default_role_target("You are not allowed to modify members of a default role"),),
        owner_only_guards=(_demotes_admin,),
    ),
    ("role", "update.role_level"): ActionRule(
        required_permissions=get_required_permissions("role", "update"),
        variant=RankVariant.PERMISSION_GATED,
        target_level=single_role_level,
        member_reason="You must be a chat member to update roles",
        owner_reason="Chat owner can update roles",
        outranked_reason="You cannot update the role level of a higher or equal role level",
        granted_reason="Update permission granted",
        absolute_guards=(_default_role_target("You are not allowed to modify the role level of a default role"),),
        check_raw_rank=False,
    ),
    ("role", "delete"): ActionRule(
        required_permissions=get_required_permissions("role", "delete"),
        variant=RankVariant.PERMISSION_GATED,
        target_level=single_role_level,
        member_reason="You must be a chat member to delete roles",
        owner_reason="Chat owner can delete roles",
        outranked_reason="You cannot delete a higher or equal role level",
        granted_reason="Delete permission granted",
        absolute_guards=(_default_role_target("You are not allowed to delete a default role"),),
        check_raw_rank=False,
    ),
}


def get_rule(resource: str, action: str) -> ActionRule:
    return RULES[(resource, action)]
