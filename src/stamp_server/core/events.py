"""
Change event types published to live dashboards.

The type string doubles as the SSE ``event:`` field, so the names match what
the counter frontend listens for.

    from stamp_server.core.events import ChangeEvents

    notifier.publish(ChangeEvents.STAMP, {"customerId": ..., "balance": 4})
"""


class ChangeEvents:
    """All event types the ledger publishes."""

    CUSTOMER = "customer"
    """
    A new customer was registered.

    Payload: {"customerId": str, "name": str}
    """

    STAMP = "stamp"
    """
    A stamp was issued.

    Payload: {
        "customerId": str,
        "balance": int,      # unredeemed stamps after this one
        "todayCount": int,   # stamps issued today, including this one
        "operator": str
    }
    """

    REDEEM = "redeem"
    """
    A reward was redeemed.

    Payload: {"customerId": str, "redemption": dict, "balance": int}
    """


def get_all_event_types() -> list[str]:
    """Return every published event type, sorted."""
    return sorted(
        value
        for name, value in vars(ChangeEvents).items()
        if isinstance(value, str) and not name.startswith("_")
    )
