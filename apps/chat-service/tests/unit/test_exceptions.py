import pytest
from fastapi import HTTPException

from chat_core.exceptions import (
    AuthorizationDenied,
    ChatCoreError,
    ResourceNotFound,
    RoleLevelRollbackError,
    RoleStoreError,
    to_http_exception,
)
from chat_core.policies.verdict import conflict, forbid, not_found


@pytest.mark.parametrize(
    "exc,status,detail",
    [
        (AuthorizationDenied(forbid("Missing permission: admin")), 403, "Missing permission: admin"),
        (AuthorizationDenied(not_found()), 404, "Chat not found"),
        (AuthorizationDenied(conflict("Chat membership already exist")), 409, "Chat membership already exist"),
        (ResourceNotFound("Role not found"), 404, "Role not found"),
        (RoleStoreError("db down"), 503, "Storage failure"),
        (RoleLevelRollbackError("restore failed"), 503, "Storage failure"),
        (ChatCoreError("unexpected"), 500, "unexpected"),
    ],
)
def test_to_http_exception(exc, status, detail):
    http_exc = to_http_exception(exc)
    assert isinstance(http_exc, HTTPException)
    assert http_exc.status_code == status
    assert http_exc.detail == detail


def test_authorization_denied_carries_verdict():
    verdict = forbid("nope")
    exc = AuthorizationDenied(verdict)
    assert exc.verdict is verdict
    assert str(exc) == "nope"
    assert isinstance(RoleLevelRollbackError("x"), RoleStoreError)
