"""Stamp-card ledger: registration, stamping, redemption and read models.

Every mutating operation is exactly one :meth:`JsonDocumentStore.commit`.
Lookups and rule checks happen *inside* the mutator, against the draft of the
document, so two concurrent requests can never both pass a check that only
one of them should pass (duplicate phone, daily cap, double redemption).

The sequence for a mutation is always:

1. Build a mutator closure that validates and edits the draft.
2. ``store.commit(mutator)``: serialized, flushed, then published in memory.
3. ``notifier.publish(...)``: only after step 2 returned, outside the gate.

A rule violation raises from inside the mutator, which abandons the commit:
the document is untouched and nothing is published.

Balances are never stored.  They are counted from the ``stamps`` collection
every time they are needed.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from stamp_server.config import LoyaltySettings
from stamp_server.core.errors import InsufficientBalance, NotFound, RateLimited, ValidationError
from stamp_server.core.events import ChangeEvents
from stamp_server.core.notifier import ChangeNotifier
from stamp_server.store import (
    Customer,
    Document,
    JsonDocumentStore,
    LogEntry,
    NoChange,
    Redemption,
    Stamp,
    new_id,
    utc_now,
)

logger = logging.getLogger(__name__)

# Returns an aware datetime. Its timezone defines the calendar day.
Clock = Callable[[], datetime]


# =============================================================================
# RESULT TYPES
# =============================================================================


@dataclass(frozen=True)
class Balance:
    """Unredeemed stamps: all of them, and the ones created today."""

    total: int
    today: int


@dataclass(frozen=True)
class RegistrationResult:
    customer: Customer
    created: bool


@dataclass(frozen=True)
class StampResult:
    stamp: Stamp
    balance: int
    today_count: int


@dataclass(frozen=True)
class RedemptionResult:
    redemption: Redemption
    balance: int


@dataclass(frozen=True)
class TopCustomer:
    customer_id: str
    name: str
    phone: str
    balance: int


@dataclass(frozen=True)
class LedgerStats:
    total_customers: int
    stamps_today: int
    total_redemptions: int
    top: list[TopCustomer]


@dataclass(frozen=True)
class CustomerView:
    """A customer with everything the counter screen shows about them."""

    customer: Customer
    balance: Balance
    stamps_today: int
    redemptions: int


# =============================================================================
# DOCUMENT QUERIES
# =============================================================================


def _same_day(moment: datetime, now: datetime) -> bool:
    return moment.astimezone(now.tzinfo).date() == now.date()


def resolve_customer(
    doc: Document, customer_id: str | None = None, phone: str | None = None
) -> Customer:
    """Find a customer by id (preferred) or phone.

    Raises:
        ValidationError: Neither reference was given.
        NotFound: No customer matches.
    """
    customer_id = (customer_id or "").strip()
    phone = (phone or "").strip()
    if customer_id:
        customer = doc.customer_by_id(customer_id)
    elif phone:
        customer = doc.customer_by_phone(phone)
    else:
        raise ValidationError("customerId or phone is required")
    if customer is None:
        raise NotFound("customer not found")
    return customer


def stamps_issued_today(doc: Document, customer_id: str, now: datetime) -> int:
    """Stamps created on ``now``'s calendar day, redeemed or not."""
    return sum(1 for s in doc.stamps_for(customer_id) if _same_day(s.created_at, now))


def unredeemed_oldest_first(doc: Document, customer_id: str) -> list[Stamp]:
    """Unredeemed stamps ordered by creation time, then insertion order."""
    indexed = [
        (stamp.created_at, position, stamp)
        for position, stamp in enumerate(doc.stamps)
        if stamp.customer_id == customer_id and not stamp.redeemed
    ]
    indexed.sort(key=lambda item: (item[0], item[1]))
    return [stamp for _, _, stamp in indexed]


def current_balance(doc: Document, customer_id: str) -> int:
    return sum(1 for s in doc.stamps if s.customer_id == customer_id and not s.redeemed)


def append_log(draft: Document, entry: LogEntry, retention: int) -> None:
    """Append to the audit log and evict the oldest entries beyond ``retention``."""
    draft.logs.append(entry)
    overflow = len(draft.logs) - retention
    if overflow > 0:
        del draft.logs[:overflow]


# =============================================================================
# LEDGER ENGINE
# =============================================================================


class LedgerEngine:
    """
    Business rules of the stamp card on top of the document store.

    Args:
        store: The shared document store.
        notifier: Receives one event per committed mutation.
        rules: Threshold, daily cap, log retention and top-N size.
        clock: Reference clock; its timezone decides what "today" means.
    """

    def __init__(
        self,
        store: JsonDocumentStore,
        notifier: ChangeNotifier,
        rules: LoyaltySettings | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.rules = rules or LoyaltySettings()
        self.clock = clock

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def register_customer(
        self,
        name: str,
        phone: str,
        email: str | None = None,
        operator: str | None = None,
    ) -> RegistrationResult:
        """
        Create a customer, or return the existing one with the same phone.

        The phone lookup runs inside the commit, so two concurrent
        registrations of one number yield a single record.

        Raises:
            ValidationError: ``name`` or ``phone`` is blank.
        """
        name = (name or "").strip()
        phone = (phone or "").strip()
        if not name or not phone:
            raise ValidationError("name and phone are required")
        email = (email or "").strip()
        customer_id = new_id()

        def mutate(draft: Document) -> None:
            if draft.customer_by_phone(phone) is not None:
                raise NoChange
            now = self.clock()
            draft.customers.append(
                Customer(id=customer_id, name=name, phone=phone, email=email, created_at=now)
            )
            append_log(
                draft,
                LogEntry(
                    id=new_id(),
                    type="customer_created",
                    timestamp=now,
                    customer_id=customer_id,
                    operator=operator,
                ),
                self.rules.log_retention,
            )

        # Either our record or the one that won the phone number.
        customer = self.store.commit(mutate).customer_by_phone(phone)
        created = customer.id == customer_id

        if created:
            logger.info("ledger: registered customer %s", customer.id)
            self._notify(ChangeEvents.CUSTOMER, {"customerId": customer.id, "name": customer.name})
        return RegistrationResult(customer=customer, created=created)

    def issue_stamp(
        self,
        *,
        operator: str,
        customer_id: str | None = None,
        phone: str | None = None,
    ) -> StampResult:
        """
        Give the customer one stamp, unless the daily cap is reached.

        Raises:
            ValidationError: No customer reference or no operator.
            NotFound: Unknown customer.
            RateLimited: ``daily_stamp_cap`` stamps were already issued today.
        """
        operator = self._require_operator(operator)
        cap = self.rules.daily_stamp_cap
        stamp_id = new_id()

        def mutate(draft: Document) -> None:
            customer = resolve_customer(draft, customer_id, phone)
            now = self.clock()
            today_count = stamps_issued_today(draft, customer.id, now)
            if today_count >= cap:
                raise RateLimited(today_count, cap)

            draft.stamps.append(
                Stamp(id=stamp_id, customer_id=customer.id, created_at=now, operator=operator)
            )
            append_log(
                draft,
                LogEntry(
                    id=new_id(),
                    type="stamp",
                    timestamp=now,
                    customer_id=customer.id,
                    operator=operator,
                    details={"stampId": stamp_id},
                ),
                self.rules.log_retention,
            )

        doc = self.store.commit(mutate)
        stamp = doc.stamp_by_id(stamp_id)
        result = StampResult(
            stamp=stamp,
            balance=current_balance(doc, stamp.customer_id),
            today_count=stamps_issued_today(doc, stamp.customer_id, stamp.created_at),
        )

        self._notify(
            ChangeEvents.STAMP,
            {
                "customerId": stamp.customer_id,
                "balance": result.balance,
                "todayCount": result.today_count,
                "operator": operator,
            },
        )
        return result

    def redeem_stamps(
        self,
        *,
        operator: str,
        customer_id: str | None = None,
        phone: str | None = None,
        note: str | None = None,
    ) -> RedemptionResult:
        """
        Trade the ``reward_threshold`` oldest unredeemed stamps for a reward.

        Marking the stamps and writing the redemption happen in the same
        commit, so no reader sees one without the other.

        Raises:
            ValidationError: No customer reference or no operator.
            NotFound: Unknown customer.
            InsufficientBalance: Fewer than ``reward_threshold`` stamps.
        """
        operator = self._require_operator(operator)
        threshold = self.rules.reward_threshold
        redemption_id = new_id()

        def mutate(draft: Document) -> None:
            customer = resolve_customer(draft, customer_id, phone)
            available = unredeemed_oldest_first(draft, customer.id)
            if len(available) < threshold:
                raise InsufficientBalance(len(available), threshold)

            now = self.clock()
            selected = available[:threshold]
            for stamp in selected:
                stamp.redeemed = True
                stamp.redeemed_at = now
            redemption = Redemption(
                id=redemption_id,
                customer_id=customer.id,
                stamp_ids=[s.id for s in selected],
                operator=operator,
                created_at=now,
                note=(note or "").strip(),
            )
            draft.redemptions.append(redemption)
            append_log(
                draft,
                LogEntry(
                    id=new_id(),
                    type="redeem",
                    timestamp=now,
                    customer_id=customer.id,
                    operator=operator,
                    details={"redemptionId": redemption.id, "count": redemption.count},
                ),
                self.rules.log_retention,
            )

        doc = self.store.commit(mutate)
        redemption = doc.redemption_by_id(redemption_id)
        result = RedemptionResult(
            redemption=redemption, balance=current_balance(doc, redemption.customer_id)
        )

        logger.info(
            "ledger: customer %s redeemed %d stamps", redemption.customer_id, redemption.count
        )
        self._notify(
            ChangeEvents.REDEEM,
            {
                "customerId": redemption.customer_id,
                "redemption": redemption.to_dict(),
                "balance": result.balance,
            },
        )
        return result

    # =========================================================================
    # READS
    # =========================================================================

    def compute_balance(self, customer_id: str) -> Balance:
        """Count unredeemed stamps, total and created today."""
        doc = self.store.load()
        if doc.customer_by_id(customer_id) is None:
            raise NotFound("customer not found")
        return self._balance(doc, customer_id, self.clock())

    def find_customer(
        self, customer_id: str | None = None, phone: str | None = None
    ) -> CustomerView:
        doc = self.store.load()
        customer = resolve_customer(doc, customer_id, phone)
        now = self.clock()
        return CustomerView(
            customer=customer,
            balance=self._balance(doc, customer.id, now),
            stamps_today=stamps_issued_today(doc, customer.id, now),
            redemptions=sum(1 for r in doc.redemptions if r.customer_id == customer.id),
        )

    def stats(self) -> LedgerStats:
        """
        Dashboard overview.

        ``top`` ranks customers by current balance, highest first, ties by
        customer id.  Customers without unredeemed stamps are left out.
        """
        doc = self.store.load()
        now = self.clock()
        balances = Counter(s.customer_id for s in doc.stamps if not s.redeemed)
        ranked = sorted(balances.items(), key=lambda item: (-item[1], item[0]))

        top = []
        for cust_id, balance in ranked[: self.rules.top_customers]:
            customer = doc.customer_by_id(cust_id)
            top.append(
                TopCustomer(
                    customer_id=cust_id,
                    name=customer.name if customer else "Unknown",
                    phone=customer.phone if customer else "",
                    balance=balance,
                )
            )

        return LedgerStats(
            total_customers=len(doc.customers),
            stamps_today=sum(1 for s in doc.stamps if _same_day(s.created_at, now)),
            total_redemptions=len(doc.redemptions),
            top=top,
        )

    def recent_logs(self, limit: int = 200) -> list[LogEntry]:
        """Newest entries first."""
        logs = self.store.load().logs
        return list(reversed(logs))[: max(limit, 0)]

    def wallet_pass(self, customer_id: str) -> dict[str, Any]:
        """The downloadable stamp card for a customer."""
        doc = self.store.load()
        customer = doc.customer_by_id(customer_id)
        if customer is None:
            raise NotFound("customer not found")
        return {
            "id": customer.id,
            "name": customer.name,
            "phone": customer.phone,
            "createdAt": customer.created_at.isoformat(),
            "stamps": current_balance(doc, customer.id),
            "generatedAt": self.clock().isoformat(),
        }

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _balance(doc: Document, customer_id: str, now: datetime) -> Balance:
        unredeemed = [s for s in doc.stamps_for(customer_id) if not s.redeemed]
        return Balance(
            total=len(unredeemed),
            today=sum(1 for s in unredeemed if _same_day(s.created_at, now)),
        )

    @staticmethod
    def _require_operator(operator: str) -> str:
        operator = (operator or "").strip()
        if not operator:
            raise ValidationError("operator is required")
        return operator

    def _notify(self, event_type: str, payload: dict[str, Any]) -> None:
        # The commit is final at this point; a notification problem is only logged.
        try:
            self.notifier.publish(event_type, payload)
        except Exception:
            logger.exception("ledger: failed to publish %r", event_type)
