import uuid

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chat_core.db import models, schemas
from chat_core.db.repositories import chats as chats_repo
from chat_core.db.repositories import permissions as permissions_repo
from chat_core.db.repositories import roles as roles_repo
from chat_core.db.repositories import users as users_repo
from chat_core.utils.limits import refresh_chat_limits_cache


@pytest.fixture(autouse=True)
def _reset_limits(monkeypatch):
    """Clear limit env + cached values for each test to avoid cross-contamination."""
    monkeypatch.delenv("CHAT_MAX_DIRECT_CHATS", raising=False)
    monkeypatch.delenv("CHAT_MAX_GROUP_CHATS", raising=False)
    refresh_chat_limits_cache()
    yield
    refresh_chat_limits_cache()


@pytest.fixture
def _engine():
    # Fresh in-memory database per test; store functions commit and roll back on their own
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(_engine):
    return sessionmaker(bind=_engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db_session):
    def _make(username=None):
        name = username or f"user-{uuid.uuid4().hex[:8]}"
        return users_repo.create_user(db_session, schemas.UserCreate(username=name))
    return _make


@pytest.fixture
def permission_ids(db_session):
    permissions_repo.ensure_permissions(db_session)

    def _ids(*names):
        return permissions_repo.get_permission_ids(db_session, names)
    return _ids


@pytest.fixture
def owner(make_user):
    return make_user("owner")


@pytest.fixture
def group_chat(db_session, owner):
    return chats_repo.create_group_chat(db_session, schemas.GroupChatCreate(name="general"), owner.id)


@pytest.fixture
def make_role(db_session, permission_ids):
    """Create a ranked role in ``chat`` granting ``permissions`` and held by ``members`` (users)."""
    def _make(chat, name, permissions=(), members=()):
        role = roles_repo.insert_role(db_session, chat.id, name, permission_ids=permission_ids(*permissions))
        for user in members:
            roles_repo.update_role_member(db_session, role.id, chat.id, user.id)
        return role
    return _make


@pytest.fixture
def join(db_session):
    def _join(chat, user):
        return chats_repo.add_member(db_session, chat.id, user.id)
    return _join


@pytest.fixture
def levels_of(db_session):
    """Map role name -> level for a chat's ranked roles, read fresh from the database."""
    def _levels(chat_id):
        db_session.expire_all()
        return {role.name: role.role_level for role in roles_repo.get_chat_roles(db_session, chat_id) if not role.is_default_role}
    return _levels
