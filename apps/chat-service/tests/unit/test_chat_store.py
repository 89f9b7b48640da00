import pytest
from sqlalchemy.exc import OperationalError

from chat_core.db import models, schemas
from chat_core.db.repositories import chats as chats_repo
from chat_core.db.repositories import permissions as permissions_repo
from chat_core.db.repositories import roles as roles_repo
from chat_core.exceptions import RoleStoreError


def _row_counts(db):
    db.expire_all()
    return {
        "chats": db.query(models.Chat).count(),
        "roles": db.query(models.Role).count(),
        "members": db.query(models.ChatMember).count(),
        "counters": db.query(models.RoleLevelCounter).count(),
    }


def test_group_chat_is_created_with_counter_default_role_and_owner(db_session, owner):
    chat = chats_repo.create_group_chat(db_session, schemas.GroupChatCreate(name="general"), owner.id)

    default = roles_repo.get_chat_default_role(db_session, chat.id)
    member = chats_repo.get_chat_member(db_session, chat.id, owner.id)
    assert default.role_level is None
    assert [role.id for role in member.roles] == [default.id]
    assert _row_counts(db_session) == {"chats": 1, "roles": 1, "members": 1, "counters": 1}


def test_direct_chat_members_share_default_role(db_session, make_user):
    alice, bob = make_user("alice"), make_user("bob")
    chat = chats_repo.create_direct_chat(db_session, alice.id, bob.id)

    default = roles_repo.get_chat_default_role(db_session, chat.id)
    assert {m.user_id for m in default.members} == {alice.id, bob.id}
    assert chats_repo.get_direct_chat_between(db_session, bob.id, alice.id).id == chat.id


def test_failed_chat_creation_leaves_nothing_behind(db_session, owner, monkeypatch):
    owner_id = owner.id

    def _seed_fails(db, names, **kwargs):
        raise OperationalError("INSERT INTO permissions", {}, Exception("disk I/O error"))

    monkeypatch.setattr(permissions_repo, "ensure_permissions", _seed_fails)

    with pytest.raises(RoleStoreError) as excinfo:
        chats_repo.create_group_chat(db_session, schemas.GroupChatCreate(name="general"), owner_id)

    assert isinstance(excinfo.value.__cause__, OperationalError)
    assert _row_counts(db_session) == {"chats": 0, "roles": 0, "members": 0, "counters": 0}
