"""
errors.py - Error taxonomy.

Errors are contracts, not strings: every rejection carries a stable
machine-readable code, a human message and a details dict, and maps to
exactly one HTTP status.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    TOKEN_NOT_FOUND = "TOKEN_NOT_FOUND"
    CONFLICT = "CONFLICT"
    FORBIDDEN = "FORBIDDEN"
    TERMINAL_STATE = "TERMINAL_STATE"
    LAYOUT_ERROR = "LAYOUT_ERROR"


class SealworksError(Exception):
    """Base exception for rejected operations."""

    code: ErrorCode = ErrorCode.VALIDATION
    status_code: int = 400

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        audit: dict[str, Any] | None = None,
    ):
        self.message = message
        self.details = details or {}
        # Audit entry to write after the failed transaction is rolled back
        self.audit = audit
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "rejected",
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(SealworksError):
    """400 - bad input, over-cap quantity, malformed token list."""

    code = ErrorCode.VALIDATION
    status_code = 400


class NotFoundError(SealworksError):
    """404 - missing token, sheet, session, binding or rule."""

    code = ErrorCode.NOT_FOUND
    status_code = 404


class TokenNotFoundError(NotFoundError):
    """404 - scanned token does not exist."""

    code = ErrorCode.TOKEN_NOT_FOUND


class ConflictError(SealworksError):
    """409 - state changed between read and write."""

    code = ErrorCode.CONFLICT
    status_code = 409


class ForbiddenError(SealworksError):
    """403 - cross-partner access or insufficient role."""

    code = ErrorCode.FORBIDDEN
    status_code = 403


class TerminalStateError(SealworksError):
    """409 - entity is REVOKED or EXPIRED and accepts no transitions."""

    code = ErrorCode.TERMINAL_STATE
    status_code = 409


class LayoutError(SealworksError):
    """422 - sheet geometry has zero capacity."""

    code = ErrorCode.LAYOUT_ERROR
    status_code = 422
