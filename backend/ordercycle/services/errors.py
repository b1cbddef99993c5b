# Overview: Shared base for coded service-layer errors.

from __future__ import annotations

from enum import Enum


class ServiceError(Exception):
    """
    Base for errors raised by the order cycle services.

    `code` is a member of the raising component's code enum so callers can
    branch on cause; `status_code` is the HTTP status the routes answer with.
    """
    status_code = 400

    def __init__(self, code: Enum, message: str, details: dict | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code.value,
            "details": self.details,
        }


class InternalErrorCode(str, Enum):
    INTERNAL = "INTERNAL"


class TransactionConflictError(ServiceError):
    """Store conflicts persisted through every retry attempt."""
    status_code = 500

    def __init__(self, message: str = "Transaction conflict; retries exhausted", details: dict | None = None):
        super().__init__(InternalErrorCode.INTERNAL, message, details)
