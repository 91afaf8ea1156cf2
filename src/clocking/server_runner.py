"""Helpers to launch the local web server."""

from __future__ import annotations

import logging
import threading
import time
import webbrowser
from typing import Optional

import uvicorn

from .config import ClockingSettings
from .db import Location
from .webapp import create_app


def run_server(
    *,
    host: str = "127.0.0.1",
    port: int = 8000,
    db_location: Optional[Location] = None,
    settings: Optional[ClockingSettings] = None,
    open_browser: bool = False,
    log_level: str = "info",
) -> None:
    """Start the FastAPI server and an optional browser tab."""
    app = create_app(db_location=db_location, settings=settings)

    if open_browser:
        url = f"http://{host}:{port}"
        threading.Thread(
            target=_launch_browser_after_delay, args=(url,), daemon=True
        ).start()

    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _launch_browser_after_delay(url: str) -> None:
    time.sleep(1.0)
    try:
        webbrowser.open(url)
    except Exception:
        logging.getLogger(__name__).exception("Failed to launch browser for %s", url)
