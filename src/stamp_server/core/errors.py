"""Domain errors raised by the ledger and operator directory.

Every error is raised before the commit mutator returns, so none of them ever
leaves a partial change behind.  ``http_status`` and :meth:`to_response` are
consumed by :mod:`stamp_server.api.error_handlers`.
"""

from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    """Base class for expected, caller-facing failures."""

    http_status: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_response(self) -> dict[str, Any]:
        return {"error": self.message}


class ValidationError(LedgerError):
    """Missing or malformed input."""


class AuthenticationError(LedgerError):
    """Credentials were supplied but do not match."""

    http_status = 401


class NotFound(LedgerError):
    """Unknown customer or operator reference."""

    http_status = 404


class RateLimited(LedgerError):
    """The customer already received the daily maximum of stamps."""

    http_status = 429

    def __init__(self, today_count: int, cap: int) -> None:
        super().__init__("daily stamp limit reached")
        self.today_count = today_count
        self.cap = cap

    def to_response(self) -> dict[str, Any]:
        return {"error": self.message, "todayCount": self.today_count, "cap": self.cap}


class InsufficientBalance(LedgerError):
    """Not enough unredeemed stamps for a reward."""

    def __init__(self, current: int, required: int) -> None:
        super().__init__("not enough stamps")
        self.current = current
        self.required = required

    def to_response(self) -> dict[str, Any]:
        return {"error": self.message, "current": self.current, "required": self.required}


class Conflict(LedgerError):
    """Concurrent creation of the same entity.

    Registration resolves duplicates by returning the existing customer, so
    this is never raised to the second caller today.
    """

    http_status = 409
