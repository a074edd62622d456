"""Operator accounts, PIN login and credential checks.

Two kinds of credentials open the operator endpoints:

- **API keys** never expire.  They come from configuration
  (``STAMP_API_KEY`` / ``STAMP_API_KEYS``) or from the document's ``apiKeys``
  collection, and they are the only credential accepted on admin endpoints.
- **Operator tokens** are issued by :meth:`OperatorDirectory.login` after a
  PIN check and expire after ``token_ttl_minutes``.

PINs are stored as bcrypt hashes.  Operator creation and login mutate the
document, so both go through the store's commit gate like every ledger
mutation.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

import bcrypt

from stamp_server.config import AuthSettings
from stamp_server.core.errors import AuthenticationError, NotFound, ValidationError
from stamp_server.core.ledger import Clock, append_log
from stamp_server.store import (
    AccessCredential,
    Document,
    JsonDocumentStore,
    LogEntry,
    Operator,
    new_id,
    utc_now,
)

logger = logging.getLogger(__name__)


def hash_pin(pin: str) -> str:
    """Hash a PIN with bcrypt."""
    return bcrypt.hashpw(pin.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def _matches(given: str, expected: str) -> bool:
    return secrets.compare_digest(given.encode("utf-8"), expected.encode("utf-8"))


def verify_pin(pin: str, pin_hash: str) -> bool:
    """Check a PIN against its bcrypt hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(pin.encode("utf-8"), pin_hash.encode("utf-8"))
    except ValueError:
        return False


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime
    operator: Operator


class OperatorDirectory:
    """
    Operator management on top of the document store.

    Args:
        store: The shared document store.
        auth: API keys and token lifetime.
        log_retention: Audit log bound, shared with the ledger.
        clock: Reference clock for token expiry.
    """

    def __init__(
        self,
        store: JsonDocumentStore,
        auth: AuthSettings | None = None,
        log_retention: int = 1000,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.auth = auth or AuthSettings()
        self.log_retention = log_retention
        self.clock = clock

    # ── API keys ─────────────────────────────────────────────────────────────

    def has_api_keys(self) -> bool:
        return bool(self.auth.api_keys) or bool(self.store.load().api_keys)

    def is_api_key(self, value: str | None) -> bool:
        if not value:
            return False
        if any(_matches(value, key) for key in self.auth.api_keys):
            return True
        return any(_matches(value, k.value) for k in self.store.load().api_keys)

    # ── Operators ────────────────────────────────────────────────────────────

    def create_operator(self, name: str, pin: str, performed_by: str | None = None) -> Operator:
        """
        Add an operator account.

        Raises:
            ValidationError: ``name`` or ``pin`` is blank.
        """
        name = (name or "").strip()
        pin = str(pin or "")
        if not name or not pin:
            raise ValidationError("name and pin required")
        pin_hash = hash_pin(pin)
        operator_id = new_id()

        def mutate(draft: Document) -> None:
            now = self.clock()
            draft.operators.append(
                Operator(id=operator_id, name=name, pin_hash=pin_hash, created_at=now)
            )
            append_log(
                draft,
                LogEntry(
                    id=new_id(),
                    type="operator_created",
                    timestamp=now,
                    operator=performed_by,
                    details={"operatorId": operator_id, "name": name},
                ),
                self.log_retention,
            )

        operator = self.store.commit(mutate).operator_by_id(operator_id)
        logger.info("operators: created operator %s (%s)", operator.name, operator.id)
        return operator

    def login(
        self, pin: str, operator_id: str | None = None, name: str | None = None
    ) -> IssuedToken:
        """
        Exchange an operator's PIN for a short-lived token.

        Expired tokens are pruned in the same commit.

        Raises:
            ValidationError: No operator reference or no PIN.
            NotFound: Unknown operator.
            AuthenticationError: Wrong PIN.
        """
        if (not operator_id and not name) or not pin:
            raise ValidationError("operatorId or name and pin required")

        doc = self.store.load()
        operator = doc.operator_by_id(operator_id) if operator_id else doc.operator_by_name(name)
        if operator is None:
            raise NotFound("operator not found")
        # bcrypt is slow on purpose; keep it outside the commit gate.
        if not verify_pin(str(pin), operator.pin_hash):
            logger.warning("operators: failed login for %s", operator.name)
            raise AuthenticationError("invalid credentials")

        token_value = secrets.token_urlsafe(32)

        def mutate(draft: Document) -> None:
            now = self.clock()
            token = AccessCredential(
                value=token_value,
                owner_ref=operator.id,
                created_at=now,
                expires_at=now + timedelta(minutes=self.auth.token_ttl_minutes),
            )
            draft.tokens = [t for t in draft.tokens if not t.is_expired(now)]
            draft.tokens.append(token)
            append_log(
                draft,
                LogEntry(
                    id=new_id(),
                    type="operator_login",
                    timestamp=now,
                    operator=operator.name,
                    details={"operatorId": operator.id},
                ),
                self.log_retention,
            )

        doc = self.store.commit(mutate)
        token = next(t for t in doc.tokens if t.value == token_value)
        return IssuedToken(token=token.value, expires_at=token.expires_at, operator=operator)

    def resolve_token(self, value: str | None) -> str | None:
        """Return the operator name behind a live token, else ``None``."""
        if not value:
            return None
        doc = self.store.load()
        token = next((t for t in doc.tokens if _matches(t.value, value)), None)
        if token is None or token.is_expired(self.clock()):
            return None
        operator = doc.operator_by_id(token.owner_ref)
        return operator.name if operator else None
