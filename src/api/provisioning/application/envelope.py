"""Uniform response envelope returned by application services.

Every outcome is reported as ``{code, message, data}`` with ``code == 0`` for
success. Messages are fixed per code; internal error detail never reaches
an envelope.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class StatusCode(IntEnum):
    """Envelope codes. The first three digits mirror the HTTP status."""

    SUCCESS = 0
    INVALID_INPUT = 40001
    ADMIN_UNAUTHORIZED = 40101
    NOT_ALLOWED = 40301
    NOT_FOUND = 40401
    IDENTITY_EXISTS = 40901
    ALLOWLIST_ENTRY_EXISTS = 40902
    ALLOWLIST_ENTRY_IN_USE = 40903
    INTERNAL_ERROR = 50001
    PROVISION_FAILED = 50002
    LEDGER_WRITE_FAILED = 50003

    @property
    def http_status(self) -> int:
        """HTTP status an adapter should use for this code."""
        if self is StatusCode.SUCCESS:
            return 200
        return self.value // 100


STATUS_MESSAGES: dict[StatusCode, str] = {
    StatusCode.SUCCESS: "Success",
    StatusCode.INVALID_INPUT: "Invalid input parameter.",
    StatusCode.ADMIN_UNAUTHORIZED: "Admin authentication required.",
    StatusCode.NOT_ALLOWED: "Identity key is not eligible to provision.",
    StatusCode.NOT_FOUND: "Resource not found.",
    StatusCode.IDENTITY_EXISTS: "Identity key already exists.",
    StatusCode.ALLOWLIST_ENTRY_EXISTS: "Identity key is already allowlisted.",
    StatusCode.ALLOWLIST_ENTRY_IN_USE: "Allowlist entry still holds an active grant.",
    StatusCode.INTERNAL_ERROR: "Internal server error.",
    StatusCode.PROVISION_FAILED: "Database provisioning failed.",
    StatusCode.LEDGER_WRITE_FAILED: "Provisioning could not be recorded.",
}


@dataclass(frozen=True)
class ApiResponse(Generic[T]):
    """Envelope carrying a status code, a fixed message and optional data."""

    code: StatusCode
    message: str
    data: T | None = None

    @property
    def ok(self) -> bool:
        """The operation succeeded."""
        return self.code is StatusCode.SUCCESS

    @classmethod
    def success(cls, data: T | None = None, message: str | None = None) -> ApiResponse[T]:
        """Build a success envelope."""
        return cls(
            code=StatusCode.SUCCESS,
            message=message or STATUS_MESSAGES[StatusCode.SUCCESS],
            data=data,
        )

    @classmethod
    def error(cls, code: StatusCode) -> ApiResponse[T]:
        """Build an error envelope with the fixed message for its code."""
        return cls(code=code, message=STATUS_MESSAGES[code])
