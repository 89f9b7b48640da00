"""Exception classes for the chat core and their HTTP translation."""

from fastapi import HTTPException, status


class ChatCoreError(Exception):
    """Base exception for the chat core."""

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class AuthorizationDenied(ChatCoreError):
    """Raised by the authorization facade when a policy returns a negative verdict."""

    def __init__(self, verdict):
        self.verdict = verdict
        super().__init__(verdict.reason)


class ResourceNotFound(ChatCoreError):
    """Raised when a chat, role, member or user does not exist."""
    pass


class RoleStoreError(ChatCoreError):
    """Raised when the role store fails to read or write storage."""
    pass


class RoleLevelRollbackError(RoleStoreError):
    """Raised when restoring role levels after a failed reorder also fails.

    Role levels may be inconsistent once this is raised; the chat needs a
    level audit before further reorders.
    """
    pass


def to_http_exception(exc: ChatCoreError) -> HTTPException:
    """Translate a core error into the HTTPException a FastAPI handler would raise."""
    if isinstance(exc, AuthorizationDenied):
        return HTTPException(status_code=exc.verdict.status_code, detail=exc.verdict.reason)
    if isinstance(exc, ResourceNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, RoleStoreError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Storage failure")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=exc.message)
