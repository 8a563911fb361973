# Created by Matthew Valancy
# Copyright 2026 Valpatel Software LLC
# Licensed under AGPL-3.0 — see LICENSE for details.
"""FIELDOPS dashboard — FastAPI application factory.

Startup builds one OperationsContext, restores saved state, and starts the
background checks (geofence, overdue acknowledgments) plus the sync polls
when a sync backend is configured.  Shutdown stops them and saves state.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from fieldops import __version__
from fieldops.errors import NotFoundError, ValidationError
from fieldops.ops import OperationsContext
from fieldops.persistence import JsonFileKeyValueStore
from fieldops.sync.http_client import HttpSyncClient
from fieldops.tactical.transform import CoordinateTransform

from dashboard.config import Settings, settings as default_settings
from dashboard.routers import annotations, assets, broadcasts, export, lanes, map_view, trails


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

class InterceptHandler(logging.Handler):
    """Forward stdlib log records (engine, uvicorn) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(level: str = "INFO") -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
               "<cyan>{name}</cyan> - <level>{message}</level>",
    )
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).handlers = [InterceptHandler()]
        logging.getLogger(name).propagate = False


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def build_context(cfg: Settings) -> OperationsContext:
    transform = CoordinateTransform(
        width=cfg.map_width,
        height=cfg.map_height,
        padding=cfg.map_padding,
        zoom_min=cfg.zoom_min,
        zoom_max=cfg.zoom_max,
        zoom_step=cfg.zoom_step,
        default_center=(cfg.default_lat, cfg.default_lng),
    )
    sync_client = None
    if cfg.sync_enabled:
        sync_client = HttpSyncClient(cfg.sync_base_url, token=cfg.sync_token, timeout=cfg.sync_timeout)
    storage = JsonFileKeyValueStore(cfg.state_dir) if cfg.persist_enabled else None
    return OperationsContext.create(
        transform=transform,
        trail_capacity=cfg.trail_capacity,
        ack_timeout_ms=cfg.ack_timeout_ms,
        operator_id=cfg.operator_id,
        sync_client=sync_client,
        storage=storage,
        broadcast_interval=cfg.broadcast_poll_interval,
        telemetry_interval=cfg.telemetry_poll_interval,
        geofence_interval=cfg.geofence_check_interval,
        overdue_interval=cfg.overdue_check_interval,
    )


def create_app(cfg: Settings | None = None, ops: OperationsContext | None = None) -> FastAPI:
    """Build the app. Pass *ops* to inject a pre-wired context (tests)."""
    cfg = cfg or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx: OperationsContext = app.state.ops
        try:
            ctx.load()
        except (OSError, ValueError) as e:
            logger.warning(f"Could not restore saved state: {e}")
        for task in ctx.tasks():
            task.start()
        logger.info(f"{cfg.app_name} dashboard ready ({len(ctx.tasks())} background tasks)")
        yield
        for task in ctx.tasks():
            await task.cancel()
        if ctx.sync is not None and isinstance(ctx.sync.client, HttpSyncClient):
            await ctx.sync.client.aclose()
        try:
            ctx.save()
        except OSError as e:
            logger.error(f"Could not save state: {e}")

    app = FastAPI(title=cfg.app_name, version=__version__, debug=cfg.debug, lifespan=lifespan)
    app.state.ops = ops or build_context(cfg)

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"detail": exc.message, "field": exc.field})

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    for module in (assets, trails, map_view, annotations, broadcasts, lanes, export):
        app.include_router(module.router)

    @app.get("/health")
    async def health():
        ctx: OperationsContext = app.state.ops
        return {
            "status": "ok",
            "version": __version__,
            "assets": len(ctx.tracker),
            "tasks": [t.stats() for t in ctx.tasks()],
            "events": ctx.event_bus.stats,
        }

    return app


def run() -> None:
    import uvicorn

    configure_logging(default_settings.log_level)
    uvicorn.run(
        create_app(),
        host=default_settings.host,
        port=default_settings.port,
        log_level=default_settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
