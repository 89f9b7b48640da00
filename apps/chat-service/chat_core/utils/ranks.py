"""
Rank helpers over a member's chat roles.

Lower level means higher rank. Only ``RankedRole`` instances carry a level;
a member holding no ranked role has rank ``NO_RANK`` (lowest possible).

Key helpers:
- highest_role_level(roles)
- roles_with_permission(roles, required)
- has_permission(roles, required)
- is_admin(roles)
- chat_roles_of(member, chat)
"""
import math
from typing import Iterable, List, Tuple

from chat_core.subjects import AnyRole, RankedRole
from chat_core.utils.role_permissions import PERM_ADMIN

NO_RANK = math.inf


def highest_role_level(roles: Iterable[AnyRole]) -> float:
    """Return the best (lowest) level among ranked roles, NO_RANK if there is none."""
    levels = [role.level for role in roles if isinstance(role, RankedRole)]
    return min(levels) if levels else NO_RANK


def roles_with_permission(roles: Iterable[AnyRole], required: Iterable[str]) -> List[AnyRole]:
    """Return the roles granting at least one of the ``required`` permissions."""
    required = frozenset(required)
    return [role for role in roles if role.permissions & required]


def has_permission(roles: Iterable[AnyRole], required: Iterable[str]) -> bool:
    return bool(roles_with_permission(roles, required))


def is_admin(roles: Iterable[AnyRole]) -> bool:
    return has_permission(roles, (PERM_ADMIN,))


def chat_roles_of(member, chat) -> Tuple[AnyRole, ...]:
    """Return the member's roles that belong to ``chat``."""
    roles = tuple(getattr(member, "roles", ()) or ())
    role_ids = getattr(chat, "role_ids", None)
    if role_ids is None:
        return roles
    return tuple(role for role in roles if role.id in role_ids)


def role_rank(role: AnyRole) -> float:
    """Rank of a single role target; the default role ranks lowest."""
    return role.level if isinstance(role, RankedRole) else NO_RANK
