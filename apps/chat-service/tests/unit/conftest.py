import uuid

import pytest

from chat_core.subjects import ChatSubject, DefaultRole, MemberSubject, RankedRole


@pytest.fixture
def ranked():
    def _ranked(level, *permissions, name=None):
        return RankedRole(id=uuid.uuid4(), name=name or f"level-{level}", level=level, permissions=frozenset(permissions))
    return _ranked


@pytest.fixture
def default_role():
    return DefaultRole(id=uuid.uuid4(), permissions=frozenset({"send_message", "create_invite", "view_chat"}))


@pytest.fixture
def member():
    def _member(*roles, **kwargs):
        return MemberSubject(user_id=kwargs.pop("user_id", uuid.uuid4()), roles=tuple(roles), **kwargs)
    return _member


@pytest.fixture
def chat():
    def _chat(*members, owner=None, is_private=False, type="group"):
        member_ids = {m.user_id for m in members}
        if owner is not None:
            member_ids.add(owner.user_id)
        return ChatSubject(
            id=uuid.uuid4(),
            owner_id=owner.user_id if owner is not None else None,
            is_private=is_private,
            type=type,
            member_ids=frozenset(member_ids),
        )
    return _chat
