import random
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import inspect

from chat_core.db import schemas
from chat_core.db.repositories import chats as chats_repo
from chat_core.db.repositories import roles as roles_repo
from chat_core.db.repositories import users as users_repo

pytestmark = pytest.mark.e2e


@pytest.fixture
def pg_chat(pg_session_factory):
    db = pg_session_factory()
    try:
        owner = users_repo.create_user(db, schemas.UserCreate(username=f"owner-{random.random()}"))
        chat = chats_repo.create_group_chat(db, schemas.GroupChatCreate(name="e2e"), owner.id)
        for i in range(1, 21):
            roles_repo.insert_role(db, chat.id, f"role-{i}")
        yield chat.id
    finally:
        db.close()


def test_migrations_create_all_tables(migrated_url, pg_session_factory):
    db = pg_session_factory()
    try:
        tables = set(inspect(db.get_bind()).get_table_names())
    finally:
        db.close()
    assert {"users", "user_blocks", "chats", "chat_members", "roles", "permissions",
            "role_permissions", "role_members", "role_level_counters"} <= tables


def test_concurrent_reorders_keep_levels_dense(pg_session_factory, pg_chat):
    def _reorder(seed):
        rng = random.Random(seed)
        db = pg_session_factory()
        try:
            ranked = [r for r in roles_repo.get_chat_roles(db, pg_chat) if not r.is_default_role]
            picked = rng.sample(ranked, k=rng.randint(2, 6))
            roles_repo.reorder_role_levels(db, pg_chat, [r.id for r in picked])
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(_reorder, range(32)))

    db = pg_session_factory()
    try:
        assert roles_repo.audit_role_levels(db, pg_chat) == []
    finally:
        db.close()


def test_concurrent_inserts_and_deletes_keep_levels_dense(pg_session_factory, pg_chat):
    def _mutate(seed):
        db = pg_session_factory()
        try:
            if seed % 2:
                roles_repo.insert_role(db, pg_chat, f"extra-{seed}")
            else:
                ranked = [r for r in roles_repo.get_chat_roles(db, pg_chat) if not r.is_default_role]
                roles_repo.delete_role(db, random.Random(seed).choice(ranked).id, pg_chat)
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=6) as pool:
        list(pool.map(_mutate, range(12)))

    db = pg_session_factory()
    try:
        assert roles_repo.audit_role_levels(db, pg_chat) == []
    finally:
        db.close()
