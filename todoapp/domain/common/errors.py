from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base for errors that carry a user-facing message."""

    code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    code = "VALIDATION_ERROR"


class NotFoundError(DomainError):
    code = "NOT_FOUND"


class AuthorizationError(DomainError):
    code = "UNAUTHORIZED"


class StorageError(DomainError):
    code = "DB_ERROR"


class ApiError(DomainError):
    """Error envelope returned by the remote task API."""

    def __init__(
        self,
        code: str,
        message: str,
        request_id: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.request_id = request_id
        self.status = status

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class TransportError(DomainError):
    """The remote call never produced an envelope (connection, timeout, bad body)."""

    code = "NETWORK_ERROR"


class RemoteNotFoundError(ApiError, NotFoundError):
    pass


class RemoteValidationError(ApiError, ValidationError):
    pass


def api_error_for(code: str, message: str, request_id: Optional[str] = None, status: Optional[int] = None) -> ApiError:
    if code == NotFoundError.code:
        return RemoteNotFoundError(code, message, request_id, status)
    if code in (ValidationError.code, "BAD_REQUEST"):
        return RemoteValidationError(code, message, request_id, status)
    return ApiError(code, message, request_id, status)
