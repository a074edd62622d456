"""
Static file serving for the counter and dashboard frontend.

No application logic lives here; the frontend talks to the JSON API.  The
same directory is reachable at ``/`` and ``/public`` because older frontend
builds reference both.
"""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

logger = logging.getLogger(__name__)


def mount_static(app: FastAPI, static_dir: str | Path) -> bool:
    """
    Mount ``static_dir`` on the app if it exists.

    Must be called after the API routers are registered, otherwise the ``/``
    mount would shadow them.

    Returns:
        True when the directory was mounted.
    """
    if not static_dir:
        return False
    directory = Path(static_dir)
    if not directory.is_dir():
        logger.warning("web: static directory %s does not exist, not serving files", directory)
        return False
    app.mount("/public", StaticFiles(directory=directory, html=True), name="public")
    app.mount("/", StaticFiles(directory=directory, html=True), name="static")
    logger.info("web: serving static files from %s", directory)
    return True
