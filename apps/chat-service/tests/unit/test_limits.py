import pytest

from chat_core.utils.limits import get_chat_limits, max_direct_chats, max_group_chats, refresh_chat_limits_cache


def test_defaults():
    assert get_chat_limits() == {"max_direct_chats": 20, "max_group_chats": 20}


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("CHAT_MAX_DIRECT_CHATS", "3")
    monkeypatch.setenv("CHAT_MAX_GROUP_CHATS", " 5 ")
    refresh_chat_limits_cache()
    assert max_direct_chats() == 3
    assert max_group_chats() == 5


@pytest.mark.parametrize("raw", ["", "abc", "-1"])
def test_invalid_values_fall_back_to_default(monkeypatch, raw):
    monkeypatch.setenv("CHAT_MAX_GROUP_CHATS", raw)
    refresh_chat_limits_cache()
    assert max_group_chats() == 20


def test_values_are_cached_until_refresh(monkeypatch):
    assert max_direct_chats() == 20
    monkeypatch.setenv("CHAT_MAX_DIRECT_CHATS", "1")
    assert max_direct_chats() == 20
    refresh_chat_limits_cache()
    assert max_direct_chats() == 1
