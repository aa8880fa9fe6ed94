"""
LiveStylist — real-time AI stylist backend.

HTTP routes handle registration, profiles and quota-checked session
start/end. The /ws/live relay bridges the mobile client to a Gemini Live
session, runs crop analysis and preview generation on the side, and
hands each finished session to the summarizer.

Run: uv run uvicorn livestylist.main:app --host 0.0.0.0 --port 8080
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

from fastapi import FastAPI, Request, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from livestylist import __version__
from livestylist.agents.preview import GeminiPreviewGenerator, PreviewGenerator
from livestylist.agents.vision import GeminiVisionPipeline, VisionPipeline
from livestylist.core.config import StylistConfig, config
from livestylist.core.logging import setup_logging
from livestylist.core.metrics import metrics
from livestylist.core.tasks import BackgroundTasks
from livestylist.core.timers import Timers
from livestylist.errors import StylistError
from livestylist.http import DeviceRateLimiter, create_session_router, create_user_router
from livestylist.persistence.store import StylistStore
from livestylist.relay.gemini_live import GeminiLiveUpstream
from livestylist.relay.upstream import UpstreamSession
from livestylist.relay.websocket import LiveRelay
from livestylist.services.entitlements import EntitlementChecker
from livestylist.services.summary import SessionSummarizer
from livestylist.session.manager import SessionManager
from livestylist.session.registry import SessionRegistry

# --- Setup ---
setup_logging()
logger = logging.getLogger("livestylist")

SHUTDOWN_DRAIN_TIMEOUT = 10.0


def create_app(
    cfg: StylistConfig | None = None,
    *,
    store: StylistStore | None = None,
    entitlements: EntitlementChecker | None = None,
    upstream_factory: Callable[[], UpstreamSession] | None = None,
    vision: VisionPipeline | None = None,
    preview: PreviewGenerator | None = None,
    summarizer: SessionSummarizer | None = None,
    timers: Timers | None = None,
) -> FastAPI:
    """Build the app. Collaborators default to the production ones from config."""
    cfg = cfg or config

    app = FastAPI(title="LiveStylist", version=__version__)

    # --- Shared state ---
    tasks = BackgroundTasks()
    timers = timers if timers is not None else Timers()
    store = store or StylistStore(cfg.store.db_path)
    entitlements = entitlements or EntitlementChecker(cfg.entitlements)
    registry = SessionRegistry()
    manager = SessionManager(registry, store, cfg.session, timers=timers, tasks=tasks)

    if upstream_factory is None:
        upstream_factory = lambda: GeminiLiveUpstream(cfg.gemini)  # noqa: E731
    if summarizer is None:
        summarizer = SessionSummarizer(store, cfg.gemini)

    live_relay = LiveRelay(
        manager=manager,
        store=store,
        upstream_factory=upstream_factory,
        vision=vision or GeminiVisionPipeline(cfg.gemini),
        preview=preview or GeminiPreviewGenerator(cfg.gemini),
        summarizer=summarizer,
        relay_config=cfg.relay,
        session_config=cfg.session,
        send_timeout=cfg.server.ws_send_timeout,
        timers=timers,
        tasks=tasks,
    )

    app.state.config = cfg
    app.state.store = store
    app.state.manager = manager
    app.state.tasks = tasks
    app.state.relay = live_relay

    limiter = DeviceRateLimiter(cfg.rate_limit)

    app.include_router(create_user_router(store, limiter))
    app.include_router(
        create_session_router(
            manager, store, entitlements, cfg.session, cfg.server.public_ws_url, limiter
        )
    )

    # --- Errors ---

    @app.exception_handler(StylistError)
    async def stylist_error_handler(request: Request, exc: StylistError) -> JSONResponse:
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = [
            f"{'.'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', '')}"
            for err in exc.errors()
        ]
        return JSONResponse(
            {"error": "validation_error", "message": "Invalid request", "details": details},
            status_code=400,
        )

    # --- Lifecycle ---

    @app.on_event("startup")
    async def startup():
        await store.start()
        await entitlements.start()
        logger.info(
            "LiveStylist %s ready (session=%ds, warning=%ds, quotas free=%d premium=%d)",
            __version__,
            cfg.session.duration_seconds,
            cfg.session.warning_seconds,
            cfg.session.free_sessions_per_day,
            cfg.session.premium_sessions_per_day,
        )

    @app.on_event("shutdown")
    async def shutdown():
        await manager.shutdown_all()
        try:
            await asyncio.wait_for(tasks.drain(), timeout=SHUTDOWN_DRAIN_TIMEOUT)
        except asyncio.TimeoutError:
            logger.warning("Background tasks still running at shutdown (%d), cancelling", len(tasks))
            tasks.cancel_all()
        await entitlements.stop()
        await store.stop()
        logger.info("LiveStylist stopped")

    # --- Probes ---

    @app.get("/health")
    async def health():
        return JSONResponse(
            {
                "status": "ok",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "active_sessions": manager.active_count(),
            }
        )

    @app.get("/ready")
    async def ready():
        try:
            ok = await store.ping()
        except Exception as e:
            logger.warning("Readiness check failed: %s", e)
            ok = False
        if not ok:
            return JSONResponse({"status": "not_ready", "store": "disconnected"}, status_code=503)
        return JSONResponse({"status": "ready", "store": "connected"})

    @app.get("/metrics")
    async def get_metrics():
        return JSONResponse(metrics.snapshot())

    # --- Live relay ---

    @app.websocket("/ws/live")
    async def live(
        websocket: WebSocket,
        session_id: str | None = None,
        device_id: str | None = None,
    ):
        await live_relay.handle(websocket, session_id, device_id)

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(
        "livestylist.main:app",
        host=config.server.host,
        port=config.server.port,
    )


if __name__ == "__main__":
    run()
