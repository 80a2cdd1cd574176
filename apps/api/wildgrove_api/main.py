"""FastAPI entrypoint for Wildgrove."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers.agents import router as agents_router
from .routers.llm import router as llm_router
from .routers.world import router as world_router
from .services.runtime_scheduler import (
    start_world_runtime_scheduler,
    stop_world_runtime_scheduler,
)
from .state import get_world, shutdown_world

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("wildgrove_api")


def _truthy_env(name: str, default: bool = False) -> bool:
    raw = str(os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


app = FastAPI(title="Wildgrove API", version="0.1.0")

_cors_origins = [o.strip() for o in os.environ.get("WILDGROVE_CORS_ORIGINS", "*").split(",")]
_cors_allow_credentials = "*" not in _cors_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=_cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(world_router)
app.include_router(agents_router)
app.include_router(llm_router)


@app.on_event("startup")
def startup() -> None:
    logger.info("[STARTUP] Wildgrove API starting up at %s", datetime.now(timezone.utc).isoformat())
    try:
        world = get_world()
        logger.info("[STARTUP] World ready: %d entities, %d agents", len(world.entities()), len(world.agents))
    except Exception as e:
        logger.error("[STARTUP] Failed to build world: %s", e)
        raise

    if _truthy_env("WILDGROVE_AUTOSTART_RUNTIME", default=False):
        start_world_runtime_scheduler()
        logger.info("[STARTUP] Background world scheduler autostart is enabled")

    logger.info("[STARTUP] Wildgrove API startup complete")


@app.on_event("shutdown")
def shutdown() -> None:
    stop_world_runtime_scheduler()
    shutdown_world()


@app.get("/healthz")
def healthz() -> dict[str, str]:
    logger.debug("[HEALTH] Health check requested")
    return {"status": "ok"}


@app.get("/api/v1/healthz")
def healthz_v1() -> dict[str, str]:
    return healthz()
