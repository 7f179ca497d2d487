"""
Error types surfaced through the JSON error envelope.

Every error carries a string ``code`` and an HTTP status so the API layer can
render ``{"ok": false, "error": {"code", "message", "details"}}`` without
inspecting messages.
"""

from typing import Any, Optional


class LogiOpsError(Exception):
    """Base class for all expected (business) errors."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the error part of the envelope."""
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class NotFoundError(LogiOpsError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier: Optional[str] = None, **kwargs: Any) -> None:
        message = f"{resource} not found" if identifier is None else f"{resource} not found: {identifier}"
        super().__init__(message, **kwargs)
        self.resource = resource


class DuplicateError(LogiOpsError):
    code = "DUPLICATE_ERROR"
    status_code = 409


class BusinessRuleError(LogiOpsError):
    code = "BUSINESS_ERROR"
    status_code = 400


class InvalidInputError(LogiOpsError):
    code = "VALIDATION_ERROR"
    status_code = 400


class ImportFileError(LogiOpsError):
    """Whole-file import failure (bad type, size, headers, mode...)."""

    code = "IMPORT_ERROR"
    status_code = 400


class SettlementStateError(LogiOpsError):
    code = "INVALID_STATE"
    status_code = 409


class RateNotFoundError(LogiOpsError):
    code = "RATE_NOT_FOUND"
    status_code = 404
