"""Error taxonomy shared by the domain layer and the REST surface.

Every error carries an HTTP-equivalent status and a stable numeric code so
that callers (the web layer, the CLI, the enforcement bot) can branch on the
code rather than parse messages.
"""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    """Machine-readable error codes. Values are part of the public API."""

    NOT_FOUND = 1
    INTERNAL_SERVER_ERROR = 2
    UNAUTHORIZED = 3
    FORBIDDEN = 4
    MISSING_SCOPE = 5
    BOT_OFFLINE = 6
    INVALID_BODY = 7
    DUPLICATE = 8
    MISSING_GUILD = 9
    MISSING_BANSHARE = 10
    MISSING_CROSSPOST = 11
    INVALID_STATE = 12
    NOT_MODIFIED = 13
    FEATURE_DISABLED = 14
    LIMIT_REACHED = 15
    RATELIMIT = 16


class APIError(Exception):
    """Base class for every error surfaced to callers."""

    status: int = 500
    code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, status: int | None = None, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"code": int(self.code), "detail": self.message}


class ValidationError(APIError):
    """Malformed input, rejected before anything is persisted."""

    status = 400
    code = ErrorCode.INVALID_BODY


class NotFoundError(APIError):
    status = 404
    code = ErrorCode.NOT_FOUND


class InvalidStateError(APIError):
    """A guarded transition's precondition did not hold."""

    status = 400
    code = ErrorCode.INVALID_STATE


class NotModifiedError(APIError):
    status = 400
    code = ErrorCode.NOT_MODIFIED


class FeatureDisabledError(APIError):
    status = 400
    code = ErrorCode.FEATURE_DISABLED


class DuplicateError(APIError):
    status = 409
    code = ErrorCode.DUPLICATE


class StorageError(APIError):
    """A persisted record file exists but could not be read."""

    status = 500
    code = ErrorCode.INTERNAL_SERVER_ERROR


class UpstreamError(APIError):
    """The enforcement gateway failed, timed out or could not be reached."""

    status = 500
    code = ErrorCode.INTERNAL_SERVER_ERROR


class UnauthorizedError(APIError):
    status = 401
    code = ErrorCode.UNAUTHORIZED


class ForbiddenError(APIError):
    status = 403
    code = ErrorCode.FORBIDDEN


class RateLimitedError(APIError):
    status = 429
    code = ErrorCode.RATELIMIT


class ConfigError(Exception):
    """Raised when the configuration file cannot be loaded."""
