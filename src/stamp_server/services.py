"""Wiring of the store, notifier, ledger and operator directory.

One :class:`StampServices` exists per application.  Route modules receive it
at router-build time.
"""

from __future__ import annotations

from dataclasses import dataclass

from stamp_server.config import ServerConfig, config
from stamp_server.core.ledger import Clock, LedgerEngine
from stamp_server.core.notifier import ChangeNotifier
from stamp_server.core.operators import OperatorDirectory
from stamp_server.store import JsonDocumentStore, utc_now


@dataclass
class StampServices:
    config: ServerConfig
    store: JsonDocumentStore
    notifier: ChangeNotifier
    ledger: LedgerEngine
    operators: OperatorDirectory


def build_services(cfg: ServerConfig | None = None, clock: Clock = utc_now) -> StampServices:
    """Open the document store named in ``cfg`` and build everything on top of it."""
    cfg = cfg or config
    store = JsonDocumentStore(cfg.store.absolute_path)
    notifier = ChangeNotifier()
    return StampServices(
        config=cfg,
        store=store,
        notifier=notifier,
        ledger=LedgerEngine(store, notifier, rules=cfg.loyalty, clock=clock),
        operators=OperatorDirectory(
            store, auth=cfg.auth, log_retention=cfg.loyalty.log_retention, clock=clock
        ),
    )
