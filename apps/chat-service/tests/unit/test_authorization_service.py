import uuid
from datetime import datetime, timedelta, timezone

import pytest

from chat_core.db import schemas
from chat_core.db.repositories import chats as chats_repo
from chat_core.db.repositories import roles as roles_repo
from chat_core.db.repositories import users as users_repo
from chat_core.exceptions import AuthorizationDenied, ResourceNotFound
from chat_core.services import authorization as authz
from chat_core.utils.limits import refresh_chat_limits_cache


@pytest.fixture
def members(group_chat, make_user, join):
    """Three joined users: alice, bob, carol."""
    users = {name: make_user(name) for name in ("alice", "bob", "carol")}
    for user in users.values():
        join(group_chat, user)
    return users


def _denied(excinfo):
    return excinfo.value.verdict


def test_owner_creates_role_at_lowest_rank(db_session, owner, group_chat, make_role, permission_ids):
    make_role(group_chat, "admins", permissions=("admin",))

    role = authz.create_chat_role(
        db_session, owner.id, group_chat.id,
        schemas.RoleCreate(name="mods", permission_ids=permission_ids("mute_member")),
    )

    assert role.role_level == 2
    assert [p.name for p in role.permissions] == ["mute_member"]
    assert schemas.Role.model_validate(role).model_dump()["permissions"][0]["name"] == "mute_member"


def test_create_role_requires_permission(db_session, group_chat, members):
    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.create_chat_role(db_session, members["alice"].id, group_chat.id, schemas.RoleCreate(name="x"))
    assert _denied(excinfo).status_code == 403
    assert _denied(excinfo).reason == "Missing permission: admin or manage_role"


def test_missing_chat_and_role(db_session, owner, group_chat):
    with pytest.raises(ResourceNotFound, match="Chat not found"):
        authz.create_chat_role(db_session, owner.id, uuid.uuid4(), schemas.RoleCreate(name="x"))
    with pytest.raises(ResourceNotFound, match="Role not found"):
        authz.delete_role(db_session, owner.id, group_chat.id, uuid.uuid4())


def test_view_roles_self_and_all(db_session, owner, group_chat, members, make_role):
    make_role(group_chat, "mods", members=[members["alice"]])

    own = authz.view_chat_roles(db_session, members["alice"].id, group_chat.id, target_user_id=members["alice"].id)
    assert [r.name for r in own] == ["mods", "everyone"]

    with pytest.raises(AuthorizationDenied):
        authz.view_chat_roles(db_session, members["alice"].id, group_chat.id)

    assert [r.name for r in authz.view_chat_roles(db_session, owner.id, group_chat.id)] == ["mods", "everyone"]


def test_reorder_through_facade(db_session, group_chat, members, make_role, levels_of):
    make_role(group_chat, "leads", permissions=("manage_role",), members=[members["alice"]])
    r2 = make_role(group_chat, "r2")
    r3 = make_role(group_chat, "r3")
    r4 = make_role(group_chat, "r4")

    result = authz.reorder_roles(
        db_session, members["alice"].id, group_chat.id, schemas.RoleLevelUpdate(role_ids=[r4.id, r2.id]),
    )

    assert [r.name for r in result] == ["r4", "r2"]
    assert levels_of(group_chat.id) == {"leads": 1, "r4": 2, "r2": 3, "r3": 4}


def test_reorder_rejects_foreign_and_unknown_roles(db_session, owner, group_chat, make_user, make_role):
    other_chat = chats_repo.create_group_chat(db_session, schemas.GroupChatCreate(name="other"), make_user("zed").id)
    mine = make_role(group_chat, "mine")
    foreign = make_role(other_chat, "foreign")

    for ids in ([mine.id, foreign.id], [mine.id, uuid.uuid4()]):
        with pytest.raises(ResourceNotFound, match="One or more roles not found in this chat"):
            authz.reorder_roles(db_session, owner.id, group_chat.id, schemas.RoleLevelUpdate(role_ids=ids))


def test_reorder_denies_default_role_and_outranking_roles(db_session, owner, group_chat, members, make_role):
    top = make_role(group_chat, "top")
    make_role(group_chat, "leads", permissions=("manage_role",), members=[members["alice"]])
    low = make_role(group_chat, "low")
    default = roles_repo.get_chat_default_role(db_session, group_chat.id)

    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.reorder_roles(db_session, owner.id, group_chat.id, schemas.RoleLevelUpdate(role_ids=[low.id, default.id]))
    assert _denied(excinfo).reason == "You are not allowed to modify the role level of a default role"

    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.reorder_roles(db_session, members["alice"].id, group_chat.id, schemas.RoleLevelUpdate(role_ids=[low.id, top.id]))
    assert _denied(excinfo).reason == "You cannot update the role level of a higher or equal role level"


def test_delete_role_redensifies(db_session, owner, group_chat, make_role, levels_of):
    make_role(group_chat, "a")
    b = make_role(group_chat, "b")
    make_role(group_chat, "c")

    assert authz.delete_role(db_session, owner.id, group_chat.id, b.id) == b.id
    assert levels_of(group_chat.id) == {"a": 1, "c": 2}

    default = roles_repo.get_chat_default_role(db_session, group_chat.id)
    with pytest.raises(AuthorizationDenied):
        authz.delete_role(db_session, owner.id, group_chat.id, default.id)


def test_update_metadata_of_default_role(db_session, owner, group_chat, permission_ids):
    default = roles_repo.get_chat_default_role(db_session, group_chat.id)

    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.update_role_metadata(db_session, owner.id, group_chat.id, default.id, schemas.RoleMetadataUpdate(name="all"))
    assert _denied(excinfo).reason == "You cannot update the name of a default role"

    updated = authz.update_role_metadata(
        db_session, owner.id, group_chat.id, default.id,
        schemas.RoleMetadataUpdate(permission_ids=permission_ids("view_chat")),
    )
    assert [p.name for p in updated.permissions] == ["view_chat"]


def test_role_member_changes_and_admin_demotion(db_session, owner, group_chat, members, make_role):
    make_role(group_chat, "leads", permissions=("manage_role",), members=[members["alice"]])
    admins = make_role(group_chat, "admins", permissions=("admin",), members=[members["bob"]])

    role = authz.add_role_member(db_session, members["alice"].id, group_chat.id, admins.id, members["carol"].id)
    assert {m.user_id for m in role.members} == {members["bob"].id, members["carol"].id}

    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.remove_role_member(db_session, members["alice"].id, group_chat.id, admins.id, members["bob"].id)
    assert _denied(excinfo).reason == "You cannot remove an admin member from a role"

    with pytest.raises(AuthorizationDenied):
        authz.update_role_members(
            db_session, members["alice"].id, group_chat.id, admins.id,
            schemas.RoleMembersUpdate(member_ids=[members["carol"].id]),
        )

    role = authz.update_role_members(
        db_session, owner.id, group_chat.id, admins.id, schemas.RoleMembersUpdate(member_ids=[members["carol"].id]),
    )
    assert {m.user_id for m in role.members} == {members["carol"].id}

    with pytest.raises(ResourceNotFound):
        authz.add_role_member(db_session, owner.id, group_chat.id, admins.id, uuid.uuid4())


def test_mute_blocks_sending_until_unmuted(db_session, owner, group_chat, members, make_role):
    make_role(group_chat, "seniors", members=[members["alice"]])
    until = datetime.now(timezone.utc) + timedelta(hours=1)

    # Higher rank mutes without holding mute_member
    authz.mute_member(db_session, members["alice"].id, group_chat.id, members["bob"].id, schemas.MuteRequest(muted_until=until))

    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.authorize_message_send(db_session, members["bob"].id, group_chat.id)
    assert "muted" in _denied(excinfo).reason

    authz.unmute_member(db_session, owner.id, group_chat.id, members["bob"].id)
    assert authz.authorize_message_send(db_session, members["bob"].id, group_chat.id).allowed


def test_owner_cannot_be_muted_or_kicked(db_session, owner, group_chat, members, make_role):
    make_role(group_chat, "admins", permissions=("admin",), members=[members["alice"]])
    until = datetime.now(timezone.utc) + timedelta(hours=1)

    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.mute_member(db_session, members["alice"].id, group_chat.id, owner.id, schemas.MuteRequest(muted_until=until))
    assert _denied(excinfo).reason == "You cannot mute the chat owner"

    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.kick_member(db_session, members["alice"].id, group_chat.id, owner.id)
    assert _denied(excinfo).reason == "You cannot kick the chat owner"


def test_kick_removes_membership(db_session, group_chat, members, make_role):
    make_role(group_chat, "bouncers", permissions=("kick_member",), members=[members["alice"]])

    assert authz.kick_member(db_session, members["alice"].id, group_chat.id, members["bob"].id) is True
    assert chats_repo.get_chat_member(db_session, group_chat.id, members["bob"].id) is None

    with pytest.raises(ResourceNotFound, match="Member not found"):
        authz.kick_member(db_session, members["alice"].id, group_chat.id, members["bob"].id)


def test_join_and_leave(db_session, owner, group_chat, make_user):
    newcomer = make_user("newcomer")

    db_member = authz.join_chat(db_session, newcomer.id, group_chat.id)
    assert [r.name for r in db_member.roles] == ["everyone"]
    assert schemas.ChatMember.model_validate(db_member).user_id == newcomer.id

    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.join_chat(db_session, newcomer.id, group_chat.id)
    assert _denied(excinfo).status_code == 409

    assert authz.leave_chat(db_session, newcomer.id, group_chat.id) is True

    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.leave_chat(db_session, owner.id, group_chat.id)
    assert _denied(excinfo).reason == "Must transfer chat ownership before you can leave"


def test_private_chat_is_not_found_for_outsiders(db_session, owner, make_user):
    private = chats_repo.create_group_chat(db_session, schemas.GroupChatCreate(name="secret", is_private=True), owner.id)
    outsider = make_user("outsider")

    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.join_chat(db_session, outsider.id, private.id)
    assert _denied(excinfo).status_code == 404

    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.authorize_message_send(db_session, outsider.id, private.id)
    assert _denied(excinfo).status_code == 404


def test_direct_chats(db_session, make_user):
    alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")

    direct = authz.create_direct_chat(db_session, alice.id, schemas.DirectChatCreate(target_user_id=bob.id))
    assert direct.type == "direct"
    assert schemas.Chat.model_validate(direct).owner_id is None
    assert schemas.User.model_validate(alice).username == "alice"
    assert authz.authorize_message_send(db_session, bob.id, direct.id).allowed

    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.create_direct_chat(db_session, bob.id, schemas.DirectChatCreate(target_user_id=alice.id))
    assert _denied(excinfo).status_code == 409

    users_repo.block_user(db_session, bob.id, alice.id)
    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.authorize_message_send(db_session, alice.id, direct.id)
    assert _denied(excinfo).reason == "Either user has blocked the other"

    users_repo.block_user(db_session, carol.id, alice.id)
    with pytest.raises(AuthorizationDenied):
        authz.create_direct_chat(db_session, alice.id, schemas.DirectChatCreate(target_user_id=carol.id))

    with pytest.raises(ResourceNotFound):
        authz.create_direct_chat(db_session, alice.id, schemas.DirectChatCreate(target_user_id=uuid.uuid4()))


def test_group_chat_limit(db_session, owner, group_chat, monkeypatch):
    monkeypatch.setenv("CHAT_MAX_GROUP_CHATS", "1")
    refresh_chat_limits_cache()

    with pytest.raises(AuthorizationDenied) as excinfo:
        authz.create_group_chat(db_session, owner.id, schemas.GroupChatCreate(name="second"))
    assert _denied(excinfo).reason == "Maximum 1 group chats allowed"
