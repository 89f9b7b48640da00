"""
Domain-split Pydantic schemas.

Request payloads the authorization facade accepts and read models for the
rows it returns.
"""

from .users import UserBase, UserCreate, User
from .chats import ChatBase, GroupChatCreate, DirectChatCreate, Chat, ChatMember, MuteRequest
from .roles import (
    Permission,
    RoleBase,
    RoleCreate,
    RoleMetadataUpdate,
    RoleMembersUpdate,
    RoleLevelUpdate,
    Role,
)

__all__ = [
    "UserBase",
    "UserCreate",
    "User",
    "ChatBase",
    "GroupChatCreate",
    "DirectChatCreate",
    "Chat",
    "ChatMember",
    "MuteRequest",
    "Permission",
    "RoleBase",
    "RoleCreate",
    "RoleMetadataUpdate",
    "RoleMembersUpdate",
    "RoleLevelUpdate",
    "Role",
]
