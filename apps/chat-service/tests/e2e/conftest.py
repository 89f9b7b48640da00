import os

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .utils_pg import postgres_container


def _service_root() -> str:
    # Path to apps/chat-service
    here = os.path.dirname(__file__)
    return os.path.abspath(os.path.join(here, "..", ".."))


def alembic_config(db_url: str) -> Config:
    cfg = Config(os.path.join(_service_root(), "alembic.ini"))
    cfg.set_main_option("script_location", os.path.join(_service_root(), "migrations"))
    cfg.set_main_option("sqlalchemy.url", db_url)
    return cfg


@pytest.fixture(scope="module")
def pg_url():
    with postgres_container() as url:
        yield url


@pytest.fixture(scope="module")
def migrated_url(pg_url, monkeypatch_module):
    # env.py prefers CHAT_TEST_DB / DATABASE_URL over the ini value
    monkeypatch_module.setenv("CHAT_TEST_DB", pg_url)
    command.upgrade(alembic_config(pg_url), "head")
    yield pg_url
    command.downgrade(alembic_config(pg_url), "base")


@pytest.fixture(scope="module")
def monkeypatch_module():
    mp = pytest.MonkeyPatch()
    yield mp
    mp.undo()


@pytest.fixture(scope="module")
def pg_session_factory(migrated_url):
    engine = create_engine(migrated_url, pool_size=10, max_overflow=10)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()
