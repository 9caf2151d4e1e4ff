"""
Tapestry: Analytics API Server
==============================

HTTP surface over a TapestryEngine. The engine is injected through
`create_app(engine)` and kept on `app.state`; there is no module global.

Endpoints:
- GET    /health                        -> liveness and ledger size
- GET    /api/v1/threads                -> ordered ledger snapshot
- POST   /api/v1/threads                -> weave a thread
- DELETE /api/v1/threads?confirm=true   -> clear the ledger
- GET    /api/v1/integrity              -> hash chain verification
- GET    /api/v1/sentinel/report        -> current threat report
- GET    /api/v1/mnemosyne/{thread_id}  -> related threads
- POST   /api/v1/valkyrie/evaluate      -> one decision cycle
- POST   /api/v1/valkyrie/override      -> manual command
- POST   /api/v1/valkyrie/status        -> arm / disarm
- GET    /api/v1/valkyrie/log           -> decision history
- GET    /api/v1/notifications          -> non-fatal failures

Usage:
    uvicorn tapestry.api.server:create_app_from_env --factory
"""

from contextlib import asynccontextmanager
from typing import List, Optional
import logging

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import TapestryConfig
from ..contracts.base import ErrorCode, TapestryError
from ..contracts.events import ActionType, NotificationLevel
from ..engine import TapestryEngine
from ..observability import configure_logging
from .mapper import (
    LogEntryDTO, MatchDTO, NotificationDTO, OverrideRequest, ReportDTO,
    StatusRequest, ThreadDTO, WeaveRequest,
    map_log_entry, map_match, map_notification, map_report, map_thread,
)


logger = logging.getLogger(__name__)

_STATUS_BY_CODE = {
    ErrorCode.THREAD_NOT_FOUND: 404,
    ErrorCode.DUPLICATE_THREAD: 409,
    ErrorCode.DUPLICATE_RULE: 409,
    ErrorCode.INVALID_POLICY: 422,
    ErrorCode.UNKNOWN_COMMAND: 400,
}


def _engine(request: Request) -> TapestryEngine:
    return request.app.state.engine


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(engine: TapestryEngine, close_on_shutdown: bool = False) -> FastAPI:
    """Build the API around an existing engine."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("API serving ledger with %d threads", len(engine.ledger))
        yield
        if close_on_shutdown:
            logger.info("Shutting down engine")
            engine.close()

    app = FastAPI(
        title="Tapestry Analytics API",
        version=__version__,
        description="Ledger, Sentinel, Mnemosyne and Valkyrie over HTTP",
        lifespan=lifespan
    )
    app.state.engine = engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    @app.exception_handler(TapestryError)
    async def tapestry_error_handler(request: Request, exc: TapestryError):
        code = exc.error.code if exc.error else None
        return JSONResponse(
            status_code=_STATUS_BY_CODE.get(code, 400),
            content={"detail": str(exc), "code": code.name if code else None}
        )

    # =========================================================================
    # LEDGER
    # =========================================================================

    @app.get("/health")
    async def health_check(request: Request):
        eng = _engine(request)
        return {
            "status": "online",
            "threads": len(eng.ledger),
            "integrity_verified": eng.ledger.is_integrity_verified,
        }

    @app.get("/api/v1/threads", response_model=List[ThreadDTO])
    async def list_threads(request: Request):
        return [map_thread(t) for t in _engine(request).threads()]

    @app.post("/api/v1/threads", response_model=ThreadDTO, status_code=201)
    async def weave_thread(body: WeaveRequest, request: Request):
        thread = _engine(request).weave(
            body.intention, body.time, body.region,
            title=body.title, timestamp=body.timestamp
        )
        return map_thread(thread)

    @app.delete("/api/v1/threads")
    async def clear_threads(request: Request, confirm: bool = False):
        if not confirm:
            raise HTTPException(status_code=400, detail="Pass confirm=true to clear the ledger")
        eng = _engine(request)
        removed = len(eng.ledger)
        eng.ledger.clear()
        return {"removed": removed}

    @app.get("/api/v1/integrity")
    async def verify_integrity(request: Request):
        valid, error = _engine(request).ledger.verify_integrity()
        return {
            "valid": valid,
            "error": error.message if error else None,
            "context": dict(error.context) if error else {},
        }

    # =========================================================================
    # ANALYTICS
    # =========================================================================

    @app.get("/api/v1/sentinel/report", response_model=ReportDTO)
    async def sentinel_report(request: Request):
        return map_report(_engine(request).assess())

    @app.get("/api/v1/mnemosyne/{thread_id}", response_model=List[MatchDTO])
    async def related_threads(thread_id: str, request: Request, limit: int = Query(5, ge=0, le=100)):
        return [map_match(m) for m in _engine(request).recall(thread_id, limit=limit)]

    # =========================================================================
    # VALKYRIE
    # =========================================================================

    @app.post("/api/v1/valkyrie/evaluate", response_model=LogEntryDTO)
    async def evaluate(request: Request):
        return map_log_entry(_engine(request).evaluate())

    @app.post("/api/v1/valkyrie/override", response_model=LogEntryDTO)
    async def override(body: OverrideRequest, request: Request):
        try:
            action = ActionType(body.action.upper())
        except ValueError:
            raise HTTPException(status_code=422, detail=f"Unknown action: {body.action}")
        return map_log_entry(_engine(request).override(action, region=body.region, note=body.note))

    @app.post("/api/v1/valkyrie/status")
    async def set_status(body: StatusRequest, request: Request):
        eng = _engine(request)
        if body.armed:
            eng.arm()
        else:
            eng.disarm()
        return eng.status()

    @app.get("/api/v1/valkyrie/log", response_model=List[LogEntryDTO])
    async def execution_log(request: Request, limit: Optional[int] = Query(None, ge=0)):
        return [map_log_entry(e) for e in _engine(request).execution_log(limit)]

    @app.get("/api/v1/notifications", response_model=List[NotificationDTO])
    async def notifications(request: Request, level: Optional[NotificationLevel] = None):
        return [map_notification(n) for n in _engine(request).notifications.entries(level)]

    return app


def create_app_from_env() -> FastAPI:
    """uvicorn factory: engine configured from TAPESTRY_* variables."""
    config = TapestryConfig.from_env()
    configure_logging(config.observability.log_level)
    return create_app(TapestryEngine(config), close_on_shutdown=True)
