"""Message send, view and delete decisions. Messaging is permission-only; ranks do not apply."""
from chat_core.policies.rules import membership_gate
from chat_core.policies.verdict import allow, forbid, not_found
from chat_core.utils.ranks import chat_roles_of, has_permission, is_admin
from chat_core.utils.role_permissions import describe_permissions, get_required_permissions


def create_direct(actor, chat, context):
    target_user = context["target_user"]

    if not chat.is_member(actor.user_id):
        return not_found()

    if target_user.has_blocked(actor.user_id) or actor.has_blocked(target_user.user_id):
        return forbid("Either user has blocked the other")

    return allow("Create permission granted")


def create_group(actor, chat, context=None):
    if chat.is_owner(actor.user_id):
        return allow("Chat owner can send messages")

    denied = membership_gate(actor, chat, "You must be a chat member to send messages")
    if denied is not None:
        return denied

    now = (context or {}).get("now")
    if actor.is_muted(now):
        return forbid("You cannot perform this action while muted")

    required = get_required_permissions("message", "create")
    if not has_permission(chat_roles_of(actor, chat), required):
        return forbid(f"Missing permission: {describe_permissions(required)}")

    return allow("Create permission granted")


def view(actor, chat, context=None):
    denied = membership_gate(actor, chat, "You must be a chat member to view chat messages")
    if denied is not None:
        return denied
    return allow("View permission granted")


def delete(actor, chat, context):
    target_message = context["target_message"]

    if chat.is_owner(actor.user_id):
        return allow("Delete permission granted")
    if target_message.author_id == actor.user_id:
        return allow("Delete permission granted")

    denied = membership_gate(actor, chat, "You must be a chat member to delete messages")
    if denied is not None:
        return denied

    roles = chat_roles_of(actor, chat)
    if is_admin(roles):
        return allow("Admin permission granted")

    required = get_required_permissions("message", "delete")
    if not has_permission(roles, required):
        return forbid(f"Missing permission: {describe_permissions(required)}")

    return allow("Delete permission granted")
