"""Single-document JSON store with a serialized commit gate.

Overview
--------
The store owns exactly one :class:`~stamp_server.store.document.Document` and
its on-disk mirror.  Every mutation in the system goes through
:meth:`JsonDocumentStore.commit`; nothing else writes the file.

Commit cycle
------------
::

    1. Wait for our turn at the gate (FIFO ticket order).
    2. Deep-copy the committed document into a private draft.
    3. Run the mutator against the draft.                 ← may raise to abort
    4. Write the draft to disk (temp file + os.replace).  ← may raise PersistenceFailure
    5. Publish the draft as the new committed document.
    6. Leave the gate; the next ticket holder proceeds.

The committed document is never mutated once published, so :meth:`load` does
not take the gate: a reader gets whichever snapshot was last published and
that snapshot stays consistent for as long as the reader holds it.

Durability policy
-----------------
Memory is updated only after the disk write succeeded.  A failed write leaves
the previously committed document in place, logs at ``ERROR`` and raises
:exc:`~stamp_server.store.errors.PersistenceFailure`.  A crash right after a
failed flush therefore never loses a mutation that a caller was told
succeeded.

Concurrency
-----------
The gate serialises commits within one process.  Multi-process access to the
same file is not supported.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path

from stamp_server.store.document import Document
from stamp_server.store.errors import NoChange, PersistenceFailure, StoreOperationContext

logger = logging.getLogger(__name__)

# A mutator edits the draft in place. Raising aborts the commit.
Mutator = Callable[[Document], None]


class _TicketGate:
    """Mutual exclusion that admits waiters strictly in arrival order.

    ``threading.Lock`` makes no fairness promise, so commits take a ticket and
    wait until it is being served.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._next_ticket = 0
        self._now_serving = 0

    def __enter__(self) -> _TicketGate:
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            while ticket != self._now_serving:
                self._cond.wait()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        with self._cond:
            self._now_serving += 1
            self._cond.notify_all()


class JsonDocumentStore:
    """Owner of the shared document and its JSON file.

    Args:
        path: Location of the JSON file.  Parent directories are created on
            the first write.

    Example::

        store = JsonDocumentStore(Path("data/stamps.json"))

        def add_customer(draft: Document) -> None:
            draft.customers.append(customer)

        doc = store.commit(add_customer)
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._gate = _TicketGate()
        self._document = self._read_from_disk()

    # ── Public API ────────────────────────────────────────────────────────

    def load(self) -> Document:
        """Return the last committed document.

        Callers must treat the result as read-only.
        """
        return self._document

    def commit(self, mutator: Mutator) -> Document:
        """Run one read-modify-write-flush cycle.

        Args:
            mutator: Receives a private draft of the current document and
                edits it in place.  Raising any exception abandons the commit
                with no state change; raising :exc:`NoChange` abandons it
                silently and returns the current document.

        Returns:
            The committed document after this commit.

        Raises:
            PersistenceFailure: The draft could not be written.  Memory still
                holds the pre-commit document.
        """
        with self._gate:
            draft = copy.deepcopy(self._document)
            try:
                mutator(draft)
            except NoChange:
                return self._document
            self._write_to_disk(draft, operation="store.commit")
            self._document = draft
            return draft

    def flush(self) -> None:
        """Rewrite the committed document to disk without changing it."""
        with self._gate:
            self._write_to_disk(self._document, operation="store.flush")

    # ── Internal helpers ──────────────────────────────────────────────────

    def _read_from_disk(self) -> Document:
        if not self.path.exists():
            logger.info("store: %s not found, starting with an empty document", self.path)
            return Document()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            document = Document.from_dict(raw)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning(
                "store: %s is unreadable (%s), starting with an empty document",
                self.path,
                exc,
            )
            return Document()
        logger.info(
            "store: loaded %d customers, %d stamps from %s",
            len(document.customers),
            len(document.stamps),
            self.path,
        )
        return document

    def _write_to_disk(self, document: Document, *, operation: str) -> None:
        """Replace the file with ``document`` in full.

        The JSON is written to a temp file in the same directory and moved
        over the target with ``os.replace`` so readers of the file never see
        a half-written document.
        """
        payload = json.dumps(document.to_dict(), ensure_ascii=False, indent=2)
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            logger.error("store: failed to write %s: %s", self.path, exc)
            raise PersistenceFailure(
                context=StoreOperationContext(operation=operation, details=str(exc)),
                cause=exc,
            ) from exc
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
