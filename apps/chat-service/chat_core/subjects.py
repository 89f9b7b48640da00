"""
Already-loaded inputs for the policy functions.

Roles come in two shapes: ``RankedRole`` carries a level, ``DefaultRole``
(the chat's ``everyone`` role) has none, so the default role can never take
part in rank comparisons.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, FrozenSet, Optional, Tuple, Union


@dataclass(frozen=True)
class RankedRole:
    id: Any
    name: str
    level: int
    permissions: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class DefaultRole:
    id: Any
    name: str = "everyone"
    permissions: FrozenSet[str] = frozenset()


AnyRole = Union[RankedRole, DefaultRole]


@dataclass(frozen=True)
class ChatSubject:
    id: Any
    owner_id: Optional[Any] = None
    is_private: bool = False
    type: str = "group"
    member_ids: FrozenSet[Any] = frozenset()
    # None means "do not filter actor roles by chat"
    role_ids: Optional[FrozenSet[Any]] = None

    @property
    def is_group(self) -> bool:
        return self.type == "group"

    def is_owner(self, user_id) -> bool:
        return self.owner_id is not None and self.owner_id == user_id

    def is_member(self, user_id) -> bool:
        return user_id in self.member_ids


@dataclass(frozen=True)
class MemberSubject:
    user_id: Any
    roles: Tuple[AnyRole, ...] = ()
    muted_until: Optional[datetime] = None
    blocked_user_ids: FrozenSet[Any] = frozenset()
    direct_chat_count: int = 0
    group_chat_count: int = 0

    def is_muted(self, now: Optional[datetime] = None) -> bool:
        if self.muted_until is None:
            return False
        muted_until = self.muted_until
        if muted_until.tzinfo is None:
            muted_until = muted_until.replace(tzinfo=timezone.utc)
        return (now or datetime.now(timezone.utc)) < muted_until

    def has_blocked(self, user_id) -> bool:
        return user_id in self.blocked_user_ids


@dataclass(frozen=True)
class MessageSubject:
    id: Any
    author_id: Any
