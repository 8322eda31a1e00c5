"""Application error type.

Every failure that should reach an HTTP caller is raised as
``CodeMindError``. The HTTP layer renders it into the uniform JSON envelope;
nothing below the HTTP layer formats responses itself.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    REPO_NOT_FOUND = "REPO_NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    BINARY_CONTENT = "BINARY_CONTENT"
    AUTH_REQUIRED = "AUTH_REQUIRED"
    LLM_NOT_CONFIGURED = "LLM_NOT_CONFIGURED"
    LLM_ERROR = "LLM_ERROR"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_DEFAULT_STATUS: dict[ErrorCode, int] = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.UPSTREAM_ERROR: 502,
    ErrorCode.REPO_NOT_FOUND: 404,
    ErrorCode.RATE_LIMITED: 403,
    ErrorCode.PAYLOAD_TOO_LARGE: 400,
    ErrorCode.BINARY_CONTENT: 400,
    ErrorCode.AUTH_REQUIRED: 401,
    ErrorCode.LLM_NOT_CONFIGURED: 500,
    ErrorCode.LLM_ERROR: 502,
    ErrorCode.QUOTA_EXCEEDED: 429,
    ErrorCode.INTERNAL_ERROR: 500,
}


class CodeMindError(Exception):
    """Typed application error carrying the HTTP status to mirror."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code if status_code is not None else _DEFAULT_STATUS[code]
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "error": self.message,
            "status": self.status_code,
            "code": self.code.value,
            "message": self.message,
        }
        if self.details is not None:
            body["details"] = self.details
        return body
