"""Stamp Server: loyalty stamp-card ledger.

Customers collect stamps at the counter and trade them in for a reward once
they reach the threshold.  All state lives in one JSON document, mutated
through a serialized commit gate and observed live over Server-Sent Events.

Version Management
------------------
``__version__`` is read from the installed package metadata at import time.
The single source of truth is the ``version`` field in ``pyproject.toml``.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__: str = version("stamp_server")
except PackageNotFoundError:
    __version__ = "0.1.0"
