"""Role create, view, update and delete decisions."""
from chat_core.policies.rules import check_rank_rule, get_rule, membership_gate
from chat_core.policies.verdict import allow, forbid
from chat_core.utils.ranks import chat_roles_of, has_permission
from chat_core.utils.role_permissions import describe_permissions, get_required_permissions


def create(actor, chat, context=None):
    if chat.is_owner(actor.user_id):
        return allow("Chat owner can create roles")

    denied = membership_gate(actor, chat, "You must be a chat member to create chat roles")
    if denied is not None:
        return denied

    required = get_required_permissions("role", "create")
    if not has_permission(chat_roles_of(actor, chat), required):
        return forbid(f"Missing permission: {describe_permissions(required)}")

    return allow("Create permission granted")


def view(actor, chat, context=None):
    """Owner, permission holders, or a member looking at their own roles (``target_user``)."""
    if chat.is_owner(actor.user_id):
        return allow("Chat owner can view roles")

    denied = membership_gate(actor, chat, "You must be a chat member to view chat roles")
    if denied is not None:
        return denied

    target_user = (context or {}).get("target_user")
    if target_user is not None and target_user.user_id == actor.user_id:
        return allow("View permission granted")

    required = get_required_permissions("role", "view")
    if not has_permission(chat_roles_of(actor, chat), required):
        return forbid(f"Missing permission: {describe_permissions(required)}")

    return allow("View permission granted")


def update_metadata(actor, chat, context):
    return check_rank_rule(get_rule("role", "update.metadata"), actor, chat, [context["target_role"]], context)


def update_members(actor, chat, context):
    return check_rank_rule(get_rule("role", "update.members"), actor, chat, [context["target_role"]], context)


def update_role_level(actor, chat, context):
    # Every listed role must be out-ranked, so the unlisted roles a reorder
    # shifts (levels between the listed ones) are out-ranked as well.
    return check_rank_rule(get_rule("role", "update.role_level"), actor, chat, list(context["target_roles"]), context)


def delete(actor, chat, context):
    return check_rank_rule(get_rule("role", "delete"), actor, chat, [context["target_role"]], context)
