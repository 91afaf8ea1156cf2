"""FastAPI application that exposes a local web UI and API for clocking."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, Response
from pydantic import BaseModel, ConfigDict

from . import ranges
from .config import ClockingSettings
from .db import Location
from .errors import (
    ClockingError,
    DuplicateEntry,
    InvalidInput,
    UnfinishedExists,
)
from .models import EntryId, FinishedEntry
from .paths import resolve_store_location
from .store import ClockingStore
from .views import VIEW_DAILY_DETAIL, build_view

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"

T = TypeVar("T")


class FinishPayload(BaseModel):
    notes: str = ""
    end_time: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")


class StartPayload(BaseModel):
    notes: str = ""
    start_time: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_location: Optional[Location] = None,
    settings: Optional[ClockingSettings] = None,
) -> FastAPI:
    """Instantiate the FastAPI application around a single shared store."""
    resolved_location = resolve_store_location(db_location)
    resolved_settings = settings or ClockingSettings()
    store = ClockingStore(resolved_location)

    app = FastAPI(title="Clocking", version="0.3.0")
    app.state.store = store
    app.state.settings = resolved_settings

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        logger.info("Serving clocking store at %s", resolved_location)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        store.close()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        unfinished = _call(request.app.state.store.query_unfinished, 1)
        return {
            "store_location": str(resolved_location),
            "day_start": resolved_settings.day_start.strftime("%H:%M"),
            "day_end": resolved_settings.day_end.strftime("%H:%M"),
            "running": unfinished[0].id.title if unfinished else None,
        }

    @app.get("/api/recent")
    def recent(request: Request) -> List[str]:
        return _call(request.app.state.store.recent_titles, resolved_settings.recent_limit)

    @app.get("/api/latest/{title}")
    def latest(title: str, request: Request) -> Optional[Dict[str, Any]]:
        entry = _call(request.app.state.store.latest_finished, title)
        return _finished_payload(entry) if entry else None

    @app.get("/api/unfinished")
    def unfinished(request: Request) -> List[Dict[str, Any]]:
        entries = _call(
            request.app.state.store.query_unfinished, resolved_settings.unfinished_limit
        )
        return [_id_payload(entry.id) for entry in entries]

    @app.post("/api/start/{title}")
    def start(
        title: str, request: Request, payload: Optional[StartPayload] = None
    ) -> Dict[str, Any]:
        payload = payload or StartPayload()
        entry_id = _call(
            request.app.state.store.start,
            title,
            payload.start_time,
            payload.notes,
        )
        return _id_payload(entry_id)

    @app.post("/api/finish/{title}")
    def finish_title(
        title: str, request: Request, payload: Optional[FinishPayload] = None
    ) -> Dict[str, Any]:
        return _finish(request.app.state.store, title, payload or FinishPayload())

    @app.post("/api/finish")
    def finish_any(
        request: Request, payload: Optional[FinishPayload] = None
    ) -> Dict[str, Any]:
        return _finish(request.app.state.store, None, payload or FinishPayload())

    @app.get("/api/report/{offset}/{days}")
    def report(
        offset: int,
        days: str,
        request: Request,
        view_type: str = Query(default=VIEW_DAILY_DETAIL),
        format: str = Query(default="text", pattern="^(text|html)$"),
    ) -> Response:
        bounds = _call(ranges.offset_range, offset, _parse_days(days))
        return _report(request.app.state.store, bounds, view_type, format, resolved_settings)

    @app.get("/api/report-by-date/{start}/{end}")
    def report_by_date(
        start: str,
        end: str,
        request: Request,
        view_type: str = Query(default=VIEW_DAILY_DETAIL),
        format: str = Query(default="text", pattern="^(text|html)$"),
    ) -> Response:
        bounds = _call(ranges.date_range, start, end)
        return _report(request.app.state.store, bounds, view_type, format, resolved_settings)

    @app.get("/")
    def index() -> FileResponse:
        index_path = (STATIC_DIR / "index.html").resolve()
        if not index_path.exists():
            raise HTTPException(status_code=404, detail="UI not found")
        return FileResponse(index_path)

    return app


def _call(func: Callable[..., T], *args: Any) -> T:
    try:
        return func(*args)
    except ClockingError as exc:
        raise _http_error(exc) from exc


def _http_error(exc: ClockingError) -> HTTPException:
    if isinstance(exc, InvalidInput):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, (UnfinishedExists, DuplicateEntry)):
        return HTTPException(status_code=409, detail=str(exc))
    logger.error("Store failure: %s", exc)
    return HTTPException(status_code=500, detail=str(exc))


def _finish(
    store: ClockingStore, title: Optional[str], payload: FinishPayload
) -> Dict[str, Any]:
    finished = _call(store.finish_latest, title, payload.end_time, payload.notes)
    if finished is None:
        raise HTTPException(
            status_code=404,
            detail=f"No unfinished entry found by {title}" if title else "No unfinished entry",
        )
    return {"title": finished}


def _parse_days(value: str) -> Optional[int]:
    if value in ("", "null", "none"):
        return None
    try:
        days = int(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="days must be an integer or null") from exc
    if days < 0:
        raise HTTPException(status_code=400, detail="days must not be negative")
    return days


def _report(
    store: ClockingStore,
    bounds: Tuple[datetime, datetime],
    view_type: str,
    output_format: str,
    settings: ClockingSettings,
) -> Response:
    range_start, range_end = bounds
    entries = _call(store.query_finished, range_start, range_end)
    try:
        view = build_view(
            view_type, entries, settings, days=ranges.local_dates(range_start, range_end)
        )
    except ClockingError as exc:
        raise _http_error(exc) from exc
    if output_format == "html":
        return HTMLResponse(view.render_html())
    return PlainTextResponse(view.render_text())


def _id_payload(entry_id: EntryId) -> Dict[str, str]:
    return {"title": entry_id.title, "start": entry_id.start.isoformat()}


def _finished_payload(entry: FinishedEntry) -> Dict[str, Any]:
    return {
        "id": _id_payload(entry.id),
        "end": entry.end.isoformat(),
        "notes": entry.notes,
        "duration_seconds": entry.duration.total_seconds(),
        "html": entry.html_segment(),
    }
