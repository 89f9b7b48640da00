"""
Permission policies for chats, members, roles and messages.

Every policy is a pure function ``(actor, chat, context) -> Verdict``; a
denial is a normal return value, never an exception. Policies are looked up
by resource, action and, where an action has variants, field::

    POLICIES["role"]["update"]["role_level"](actor, chat, {"target_roles": roles})
    evaluate(actor, chat, resource="member", action="update", field="mute",
             context={"target_user": target})
"""
from typing import Any, Mapping, Optional

from chat_core.policies import chat_policy, member_policy, message_policy, role_policy
from chat_core.policies.verdict import Verdict, VerdictCode

POLICIES = {
    "chat": {
        "create": {"direct": chat_policy.create_direct, "group": chat_policy.create_group},
        "view": {"direct": chat_policy.view_direct, "group": chat_policy.view_group},
        "update": chat_policy.update,
        "delete": chat_policy.delete,
    },
    "member": {
        "create": {"self": member_policy.join_self},
        "view": member_policy.view,
        "update": {"mute": member_policy.mute, "unmute": member_policy.unmute},
        "delete": {"self": member_policy.leave_self, "kick": member_policy.kick},
    },
    "role": {
        "create": role_policy.create,
        "view": role_policy.view,
        "update": {
            "metadata": role_policy.update_metadata,
            "members": role_policy.update_members,
            "role_level": role_policy.update_role_level,
        },
        "delete": role_policy.delete,
    },
    "message": {
        "create": {"direct": message_policy.create_direct, "group": message_policy.create_group},
        "view": message_policy.view,
        "delete": message_policy.delete,
    },
}


def resolve_policy(resource: str, action: str, field: Optional[str] = None):
    """Return the policy function for ``resource.action[.field]``.

    Raises:
        KeyError: If no such policy exists
    """
    policy = POLICIES.get(resource, {}).get(action)
    if isinstance(policy, Mapping):
        policy = policy.get(field) if field else None
    if policy is None:
        path = ".".join(part for part in (resource, action, field) if part)
        raise KeyError(f"No policy registered for {path}")
    return policy


def evaluate(
    actor,
    chat,
    *,
    resource: str,
    action: str,
    field: Optional[str] = None,
    context: Optional[Mapping[str, Any]] = None,
) -> Verdict:
    return resolve_policy(resource, action, field)(actor, chat, dict(context or {}))


__all__ = ["POLICIES", "Verdict", "VerdictCode", "evaluate", "resolve_policy"]
