"""
Domain-split SQLAlchemy models with a single import point.

Exposes `Base`, `now_utc`, and all ORM classes.
"""

from .base import Base, now_utc  # re-export

# Domain models
from .users import User, UserBlock
from .chats import Chat, ChatMember, RoleLevelCounter, CHAT_TYPE_DIRECT, CHAT_TYPE_GROUP
from .roles import Role, Permission, role_permissions, role_members

__all__ = [
    # base
    "Base",
    "now_utc",
    # users
    "User",
    "UserBlock",
    # chats
    "Chat",
    "ChatMember",
    "RoleLevelCounter",
    "CHAT_TYPE_DIRECT",
    "CHAT_TYPE_GROUP",
    # roles
    "Role",
    "Permission",
    "role_permissions",
    "role_members",
]
