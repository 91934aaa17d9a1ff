from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    NOT_FOUND = "NotFound"
    ALREADY_EXISTS = "AlreadyExists"
    EXPIRED = "Expired"
    INVALID = "Invalid"
    UNAUTHORIZED = "Unauthorized"
    CONNECTION_FAILED = "ConnectionFailed"
    TOO_LARGE = "TooLarge"
    OTHER = "Other"


class StorageError(RuntimeError):
    """
    Classified failure raised by the registry components.

    Store and object-store failures are not wrapped; they reach the caller as raised by
    SQLAlchemy/botocore. `code` is what callers branch on, never the message.
    """

    def __init__(self, code: ErrorCode, message: str | None = None):
        self.code = code
        self.message = message or code.value
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"StorageError(code={self.code.value!r}, message={self.message!r})"


def not_found(message: str | None = None) -> StorageError:
    return StorageError(ErrorCode.NOT_FOUND, message)


def already_exists(message: str | None = None) -> StorageError:
    return StorageError(ErrorCode.ALREADY_EXISTS, message)


def expired(message: str | None = None) -> StorageError:
    return StorageError(ErrorCode.EXPIRED, message)


def invalid(message: str | None = None) -> StorageError:
    return StorageError(ErrorCode.INVALID, message)


def unauthorized(message: str | None = None) -> StorageError:
    return StorageError(ErrorCode.UNAUTHORIZED, message)
