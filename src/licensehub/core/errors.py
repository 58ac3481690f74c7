"""Error taxonomy. Raised anywhere below the HTTP layer; mapped to responses by Application."""
from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base for errors that carry their own HTTP status and machine-readable code."""

    status_code = 500
    code = "server_error"

    def __init__(self, message: str | None = None, *, details: Any = None) -> None:
        self.message = message or self.code.replace("_", " ")
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"ok": False, "error": self.code, "message": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class AuthError(AppError):
    status_code = 401
    code = "unauthorized"


class ConfigError(AppError):
    """Server is not configured to serve the request (e.g. no API key)."""

    status_code = 500
    code = "server_misconfigured"


class ValidationError(AppError):
    status_code = 400
    code = "invalid_input"


class InvalidJSON(ValidationError):
    code = "invalid_json"


class NotFound(AppError):
    status_code = 404
    code = "not_found"


class BusinessRuleError(AppError):
    """Well-formed request refused by a ledger rule."""

    status_code = 400
    code = "rule_violation"


class StoreUnavailable(AppError):
    """Store unreachable or lock wait timed out. Safe to retry."""

    status_code = 503
    code = "store_unavailable"
