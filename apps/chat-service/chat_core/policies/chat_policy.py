"""Chat creation, visibility, profile update and deletion decisions."""
from chat_core.policies.rules import membership_gate
from chat_core.policies.verdict import allow, conflict, forbid, not_found
from chat_core.utils.limits import max_direct_chats, max_group_chats
from chat_core.utils.ranks import chat_roles_of, has_permission
from chat_core.utils.role_permissions import describe_permissions, get_required_permissions


def create_direct(actor, existing_chat, context=None):
    """``existing_chat`` is the direct chat already shared with the target, if any."""
    target_user = (context or {})["target_user"]

    if existing_chat is not None:
        return conflict("Direct chat already exists")

    limit = max_direct_chats()
    if actor.direct_chat_count >= limit:
        return forbid(f"Maximum {limit} direct chats allowed")

    if actor.has_blocked(target_user.user_id) or target_user.has_blocked(actor.user_id):
        return forbid("Action not allowed because one of the users has blocked the other")

    return allow("Create permission granted")


def create_group(actor, chat=None, context=None):
    limit = max_group_chats()
    if actor.group_chat_count >= limit:
        return forbid(f"Maximum {limit} group chats allowed")
    return allow("Create permission granted")


def view_direct(actor, chat, context=None):
    if not chat.is_member(actor.user_id):
        return not_found()
    return allow("View permission granted")


def view_group(actor, chat, context=None):
    if chat.is_owner(actor.user_id):
        return allow("View permission granted")
    denied = membership_gate(actor, chat, "View permission denied")
    if denied is not None:
        return denied
    return allow("View permission granted")


def update(actor, chat, context=None):
    field = (context or {}).get("field", "chat")

    if chat.is_owner(actor.user_id):
        return allow("Update permission granted")

    is_member = chat.is_member(actor.user_id)
    if is_member and not chat.is_group:
        return forbid("Direct chat cannot be modified")

    denied = membership_gate(actor, chat, f"You must be a chat member to modify {field}")
    if denied is not None:
        return denied

    required = get_required_permissions("chat", "update")
    if not has_permission(chat_roles_of(actor, chat), required):
        return forbid(f"Missing permission: {describe_permissions(required)}")

    return allow("Update permission granted")


def delete(actor, chat, context=None):
    is_member = chat.is_member(actor.user_id)

    if is_member and not chat.is_group:
        return forbid("Direct chat cannot be deleted")
    if chat.is_private and not is_member and not chat.is_owner(actor.user_id):
        return not_found()
    if not chat.is_owner(actor.user_id):
        return forbid("Must be owner to delete chat")

    return allow("Delete permission granted")
