"""Typed exceptions for the document store.

Domain outcomes (unknown customer, daily cap reached, ...) live in
:mod:`stamp_server.core.errors`.  This module only covers infrastructure
failures, so API boundaries can map them to deterministic HTTP 5xx responses
and logs.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class StoreOperationContext:
    """Structured operation metadata carried by store exceptions.

    Attributes:
        operation: Stable operation identifier (for example
            ``"store.commit"``).
        details: Optional human-readable context for logs and debugging.
    """

    operation: str
    details: str | None = None


class StoreError(RuntimeError):
    """Base exception for store-layer failures."""


class NoChange(Exception):
    """Raised by a commit mutator to signal that nothing needs writing."""


class PersistenceFailure(StoreError):
    """The document could not be written to disk.

    The in-memory document is left at its pre-commit state.

    Args:
        context: Structured operation metadata.
        cause: Optional underlying exception.
    """

    def __init__(
        self,
        *,
        context: StoreOperationContext,
        cause: Exception | None = None,
    ) -> None:
        message = context.operation
        if context.details:
            message = f"{message}: {context.details}"
        super().__init__(message)
        self.context = context
        self.cause = cause
