"""
Change notifier: fan-out of committed ledger changes to live sinks.

=============================================================================
PRINCIPLES
=============================================================================

1. THE NOTIFIER REPORTS FACTS
   - A change event is published only after its commit reached disk
   - Nothing a sink does can undo or retry that commit

2. ONE GLOBAL ORDER
   - Every publish gets the next sequence number
   - Each sink receives events in sequence order

3. SINK FAILURES ARE LOCAL
   - A sink that raises is logged and dropped
   - The remaining sinks still receive the event
   - The publisher never sees the error

4. NO BACKLOG
   - A sink only receives events published while it is subscribed

=============================================================================
USAGE
=============================================================================

    notifier = ChangeNotifier()

    handle = notifier.subscribe(lambda event: print(event.type, event.payload))
    notifier.publish("stamp", {"customerId": "abc", "balance": 4})
    notifier.unsubscribe(handle)

    # From an async endpoint, bridge into a queue owned by the event loop:
    queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
    handle = notifier.subscribe(QueueSink(asyncio.get_running_loop(), queue))

=============================================================================
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

# A sink takes one event and returns nothing.
Sink = Callable[["ChangeEvent"], None]


@dataclass(frozen=True)
class ChangeEvent:
    """
    One published change.

    Attributes:
        type: Event type, see :class:`~stamp_server.core.events.ChangeEvents`.
        payload: JSON-serialisable event data.
        sequence: Position in the global publish order (starts at 1).
        timestamp: Wall clock time of publication, for display only.
    """

    type: str
    payload: dict[str, Any] = field(default_factory=dict)
    sequence: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class SinkHandle:
    """Opaque token returned by :meth:`ChangeNotifier.subscribe`."""

    id: int


class ChangeNotifier:
    """
    Registry of live sinks with ordered, failure-isolated broadcast.

    Thread Safety:
    - Publishes and (un)subscriptions are serialised by one re-entrant lock,
      which is what gives every sink the same event order
    - A sink may unsubscribe itself while it is being called
    - Sinks must not block; :class:`QueueSink` hands off to an event loop
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._sinks: dict[int, Sink] = {}
        self._ids = itertools.count(1)
        self._sequence = 0

    def subscribe(self, sink: Sink) -> SinkHandle:
        """Register a sink. Keep the handle for the lifetime of the connection."""
        with self._lock:
            handle = SinkHandle(next(self._ids))
            self._sinks[handle.id] = sink
            logger.debug("notifier: sink %d subscribed (%d live)", handle.id, len(self._sinks))
            return handle

    def unsubscribe(self, handle: SinkHandle) -> None:
        """Remove a sink. Calling it twice, or after the sink failed, is harmless."""
        with self._lock:
            if self._sinks.pop(handle.id, None) is not None:
                logger.debug("notifier: sink %d unsubscribed", handle.id)

    def publish(self, event_type: str, payload: dict[str, Any] | None = None) -> ChangeEvent:
        """
        Deliver an event to every currently subscribed sink.

        Sinks are called in subscription order.  A sink that raises is
        removed; delivery continues with the next one.

        Returns:
            The published event.
        """
        with self._lock:
            self._sequence += 1
            event = ChangeEvent(
                type=event_type,
                payload=payload if payload is not None else {},
                sequence=self._sequence,
            )
            for sink_id, sink in list(self._sinks.items()):
                try:
                    sink(event)
                except Exception as exc:
                    logger.warning(
                        "notifier: dropping sink %d after delivery failure: %s", sink_id, exc
                    )
                    self._sinks.pop(sink_id, None)
            return event

    @property
    def sink_count(self) -> int:
        with self._lock:
            return len(self._sinks)


class QueueSink:
    """
    Sink that forwards events into an ``asyncio.Queue`` owned by ``loop``.

    Publishing usually happens on a worker thread, so the put is scheduled on
    the loop with ``call_soon_threadsafe``.  Callbacks scheduled that way run
    in FIFO order, which keeps the global event order intact.  Once the loop
    is closed the call raises ``RuntimeError`` and the notifier drops the sink.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, queue: asyncio.Queue) -> None:
        self._loop = loop
        self._queue = queue

    def __call__(self, event: ChangeEvent) -> None:
        self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
