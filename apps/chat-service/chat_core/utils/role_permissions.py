"""
Permission vocabulary for chat roles.

This module defines the fixed set of permission names a chat role can grant,
the permissions each guarded action requires, and the grants given to the
default ``everyone`` role of every new chat.
"""

from typing import Dict, FrozenSet


# Central permission constants to ensure consistency across the codebase
PERM_ADMIN = "admin"
PERM_MANAGE_ROLE = "manage_role"
PERM_MANAGE_CHAT = "manage_chat"
PERM_MANAGE_MESSAGE = "manage_message"
PERM_KICK_MEMBER = "kick_member"
PERM_MUTE_MEMBER = "mute_member"
PERM_SEND_MESSAGE = "send_message"
PERM_CREATE_INVITE = "create_invite"
PERM_VIEW_CHAT = "view_chat"

ALLOWED_PERMISSIONS: FrozenSet[str] = frozenset({
    PERM_ADMIN,
    PERM_MANAGE_ROLE,
    PERM_MANAGE_CHAT,
    PERM_MANAGE_MESSAGE,
    PERM_KICK_MEMBER,
    PERM_MUTE_MEMBER,
    PERM_SEND_MESSAGE,
    PERM_CREATE_INVITE,
    PERM_VIEW_CHAT,
})

# Granted to the default role when a chat is created
DEFAULT_ROLE_NAME = "everyone"
DEFAULT_PERMISSIONS: FrozenSet[str] = frozenset({PERM_SEND_MESSAGE, PERM_CREATE_INVITE, PERM_VIEW_CHAT})

# Any one permission of a set satisfies the requirement
REQUIRED_PERMISSIONS: Dict[str, Dict[str, FrozenSet[str]]] = {
    "chat": {
        "update": frozenset({PERM_MANAGE_CHAT, PERM_ADMIN}),
    },
    "member": {
        "mute": frozenset({PERM_ADMIN, PERM_MUTE_MEMBER}),
        "unmute": frozenset({PERM_ADMIN, PERM_MUTE_MEMBER}),
        "kick": frozenset({PERM_ADMIN, PERM_KICK_MEMBER}),
    },
    "role": {
        "create": frozenset({PERM_ADMIN, PERM_MANAGE_ROLE}),
        "view": frozenset({PERM_ADMIN, PERM_MANAGE_ROLE}),
        "update": frozenset({PERM_ADMIN, PERM_MANAGE_ROLE}),
        "delete": frozenset({PERM_ADMIN, PERM_MANAGE_ROLE}),
    },
    "message": {
        "create": frozenset({PERM_ADMIN, PERM_SEND_MESSAGE, PERM_MANAGE_MESSAGE}),
        "delete": frozenset({PERM_ADMIN, PERM_MANAGE_MESSAGE}),
    },
}


def get_required_permissions(resource: str, action: str) -> FrozenSet[str]:
    """
    Get the permissions that satisfy a guarded action.

    Args:
        resource: The resource name (chat, member, role, message)
        action: The action name within the resource

    Returns:
        Frozen set of permission names; holding any one of them is enough

    Raises:
        KeyError: If the resource/action pair is not guarded by a permission
    """
    try:
        return REQUIRED_PERMISSIONS[resource][action]
    except KeyError:
        raise KeyError(f"No permission requirement for {resource}.{action}") from None


def validate_permission(name: str) -> str:
    """
    Validate that a permission name is part of the vocabulary and return it.

    Raises:
        ValueError: If the name is unknown
    """
    if name not in ALLOWED_PERMISSIONS:
        raise ValueError(f"Invalid permission '{name}'. Allowed permissions: {sorted(ALLOWED_PERMISSIONS)}")
    return name


def describe_permissions(permissions) -> str:
    """Human readable 'a or b' listing used in denial reasons."""
    return " or ".join(sorted(permissions))
