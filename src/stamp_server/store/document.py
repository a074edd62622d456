"""Entities of the persisted stamp-card document.

Everything the server knows lives in one :class:`Document`.  It is serialized
as a single JSON object with one top-level array per collection::

    {
      "customers":   [{"id": ..., "name": ..., "phone": ..., "email": ..., "createdAt": ...}],
      "stamps":      [{"id": ..., "customerId": ..., "createdAt": ..., "redeemed": false,
                       "redeemedAt": null, "operator": ...}],
      "redemptions": [{"id": ..., "customerId": ..., "stampIds": [...], "count": 10,
                       "operator": ..., "note": "", "createdAt": ...}],
      "logs":        [{"id": ..., "type": "stamp", "customerId": ..., "operator": ...,
                       "timestamp": ..., "details": {...}}],
      "apiKeys":     [{"value": ..., "ownerRef": ...}],
      "operators":   [{"id": ..., "name": ..., "pinHash": ..., "createdAt": ...}],
      "tokens":      [{"value": ..., "ownerRef": ..., "createdAt": ..., "expiresAt": ...}]
    }

Timestamps are timezone-aware and stored as ISO-8601 strings.  Collection
order on disk is insertion order, which the ledger relies on to break ties
between stamps created at the same instant.

A customer's balance is never stored here.  It is always derived from the
``stamps`` collection.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def new_id() -> str:
    """Return a fresh identifier (UUID4 hex, 32 lowercase chars)."""
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(UTC)


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    # Naive timestamps are read as UTC.
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _require_ts(value: str | None) -> datetime:
    """Parse a mandatory timestamp. A missing or empty value is malformed."""
    if not value:
        raise ValueError("required timestamp is missing")
    return _parse_ts(value)


# =============================================================================
# ENTITIES
# =============================================================================


@dataclass
class Customer:
    """A card holder. ``phone`` is the natural key."""

    id: str
    name: str
    phone: str
    created_at: datetime
    email: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "createdAt": _ts(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Customer:
        return cls(
            id=data["id"],
            name=data["name"],
            phone=data["phone"],
            email=data.get("email") or "",
            created_at=_require_ts(data.get("createdAt")),
        )


@dataclass
class Stamp:
    """One unit of credit. ``redeemed`` only ever goes from False to True."""

    id: str
    customer_id: str
    created_at: datetime
    operator: str
    redeemed: bool = False
    redeemed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customerId": self.customer_id,
            "createdAt": _ts(self.created_at),
            "redeemed": self.redeemed,
            "redeemedAt": _ts(self.redeemed_at),
            "operator": self.operator,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Stamp:
        return cls(
            id=data["id"],
            customer_id=data["customerId"],
            created_at=_require_ts(data.get("createdAt")),
            operator=data.get("operator") or "",
            redeemed=bool(data.get("redeemed", False)),
            redeemed_at=_parse_ts(data.get("redeemedAt")),
        )


@dataclass
class Redemption:
    """A reward handed out against ``count`` stamps. Immutable once written."""

    id: str
    customer_id: str
    stamp_ids: list[str]
    operator: str
    created_at: datetime
    note: str = ""

    @property
    def count(self) -> int:
        return len(self.stamp_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customerId": self.customer_id,
            "stampIds": list(self.stamp_ids),
            "count": self.count,
            "operator": self.operator,
            "note": self.note,
            "createdAt": _ts(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Redemption:
        return cls(
            id=data["id"],
            customer_id=data["customerId"],
            stamp_ids=list(data.get("stampIds") or []),
            operator=data.get("operator") or "",
            created_at=_require_ts(data.get("createdAt")),
            note=data.get("note") or "",
        )


@dataclass
class LogEntry:
    """Audit trail entry. The log is append-only and bounded."""

    id: str
    type: str
    timestamp: datetime
    customer_id: str | None = None
    operator: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "customerId": self.customer_id,
            "operator": self.operator,
            "timestamp": _ts(self.timestamp),
            "details": dict(self.details),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LogEntry:
        return cls(
            id=data["id"],
            type=data["type"],
            timestamp=_require_ts(data.get("timestamp")),
            customer_id=data.get("customerId"),
            operator=data.get("operator"),
            details=dict(data.get("details") or {}),
        )


@dataclass
class Operator:
    """Counter staff allowed to issue and redeem stamps with a PIN login."""

    id: str
    name: str
    pin_hash: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "pinHash": self.pin_hash,
            "createdAt": _ts(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Operator:
        return cls(
            id=data["id"],
            name=data["name"],
            pin_hash=data["pinHash"],
            created_at=_require_ts(data.get("createdAt")),
        )


@dataclass
class AccessCredential:
    """An API key (no expiry) or an operator token (explicit expiry).

    ``owner_ref`` is a free-form owner label for API keys and the operator id
    for tokens.
    """

    value: str
    owner_ref: str
    created_at: datetime | None = None
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"value": self.value, "ownerRef": self.owner_ref}
        if self.created_at is not None:
            data["createdAt"] = _ts(self.created_at)
        if self.expires_at is not None:
            data["expiresAt"] = _ts(self.expires_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccessCredential:
        return cls(
            value=data["value"],
            owner_ref=data.get("ownerRef") or "",
            created_at=_parse_ts(data.get("createdAt")),
            expires_at=_parse_ts(data.get("expiresAt")),
        )


# =============================================================================
# DOCUMENT
# =============================================================================


@dataclass
class Document:
    """The root aggregate and sole unit of persistence."""

    customers: list[Customer] = field(default_factory=list)
    stamps: list[Stamp] = field(default_factory=list)
    redemptions: list[Redemption] = field(default_factory=list)
    logs: list[LogEntry] = field(default_factory=list)
    api_keys: list[AccessCredential] = field(default_factory=list)
    operators: list[Operator] = field(default_factory=list)
    tokens: list[AccessCredential] = field(default_factory=list)

    # ── Lookups ─────────────────────────────────────────────────────────────

    def customer_by_id(self, customer_id: str) -> Customer | None:
        return next((c for c in self.customers if c.id == customer_id), None)

    def customer_by_phone(self, phone: str) -> Customer | None:
        return next((c for c in self.customers if c.phone == phone), None)

    def stamps_for(self, customer_id: str) -> list[Stamp]:
        """All stamps of a customer in insertion order."""
        return [s for s in self.stamps if s.customer_id == customer_id]

    def stamp_by_id(self, stamp_id: str) -> Stamp | None:
        return next((s for s in self.stamps if s.id == stamp_id), None)

    def redemption_by_id(self, redemption_id: str) -> Redemption | None:
        return next((r for r in self.redemptions if r.id == redemption_id), None)

    def operator_by_id(self, operator_id: str) -> Operator | None:
        return next((o for o in self.operators if o.id == operator_id), None)

    def operator_by_name(self, name: str) -> Operator | None:
        return next((o for o in self.operators if o.name == name), None)

    # ── Serialization ───────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "customers": [c.to_dict() for c in self.customers],
            "stamps": [s.to_dict() for s in self.stamps],
            "redemptions": [r.to_dict() for r in self.redemptions],
            "logs": [e.to_dict() for e in self.logs],
            "apiKeys": [k.to_dict() for k in self.api_keys],
            "operators": [o.to_dict() for o in self.operators],
            "tokens": [t.to_dict() for t in self.tokens],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Document:
        """Build a document from its JSON form. Missing collections are empty.

        Raises:
            KeyError, TypeError, ValueError: If an entry is malformed.
        """
        if not isinstance(data, dict):
            raise TypeError(f"Document root must be an object, got {type(data).__name__}")
        return cls(
            customers=[Customer.from_dict(c) for c in data.get("customers") or []],
            stamps=[Stamp.from_dict(s) for s in data.get("stamps") or []],
            redemptions=[Redemption.from_dict(r) for r in data.get("redemptions") or []],
            logs=[LogEntry.from_dict(e) for e in data.get("logs") or []],
            api_keys=[AccessCredential.from_dict(k) for k in data.get("apiKeys") or []],
            operators=[Operator.from_dict(o) for o in data.get("operators") or []],
            tokens=[AccessCredential.from_dict(t) for t in data.get("tokens") or []],
        )
