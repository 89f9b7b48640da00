"""Per-user chat limits sourced from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Literal, TypedDict, cast


LimitKey = Literal[
    "max_direct_chats",
    "max_group_chats",
]


class ChatLimitValues(TypedDict):
    max_direct_chats: int
    max_group_chats: int


@dataclass(frozen=True)
class LimitDefinition:
    env_var: str
    default: int


_LIMIT_DEFINITIONS: Dict[LimitKey, LimitDefinition] = {
    "max_direct_chats": LimitDefinition("CHAT_MAX_DIRECT_CHATS", 20),
    "max_group_chats": LimitDefinition("CHAT_MAX_GROUP_CHATS", 20),
}


def _normalize_int(value: str | None, default: int) -> int:
    """Return a non-negative int from an environment-style value."""
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= 0 else default


@lru_cache(maxsize=None)
def get_chat_limits() -> ChatLimitValues:
    """Return the cached limit values sourced from the environment."""
    values: Dict[LimitKey, int] = {}
    for key, definition in _LIMIT_DEFINITIONS.items():
        values[key] = _normalize_int(os.getenv(definition.env_var), definition.default)
    return cast(ChatLimitValues, values)


def max_direct_chats() -> int:
    return get_chat_limits()["max_direct_chats"]


def max_group_chats() -> int:
    return get_chat_limits()["max_group_chats"]


def refresh_chat_limits_cache() -> None:
    """Invalidate cached limit values (useful for tests)."""
    get_chat_limits.cache_clear()
