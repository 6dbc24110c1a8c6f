"""FastAPI application entry point — wires everything together.

Usage:
    python -m src.main

Starts the clinic scheduling API (booking, availability, planning).
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from src.api.appointments import register_error_handlers, router
from src.config import settings
from src.db.engine import db_lifespan
from src.events import emit, start_event_system, stop_event_system, subscribe, unsubscribe
from src.schemas.events import EventType, SystemEvent
from src.security.audit import audit_on_event

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    stream=sys.stdout,
)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = logging.getLogger(__name__)

# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info("Starting %s scheduler (env=%s)", settings.clinic_name, settings.environment)

    # 1. Database
    async with db_lifespan():
        logger.info("Database initialized")

        # 2. Event system
        await start_event_system()

        # 3. Audit logging — always active (global subscriber)
        subscribe(audit_on_event)
        logger.info("Audit logging subscriber registered")

        await emit(SystemEvent(
            event_type=EventType.SYSTEM_STARTUP,
            actor_id="system",
            data={"environment": settings.environment, "lock_backend": settings.scheduling.lock_backend},
            source_module="main",
        ))

        logger.info(
            "Booking locks: %s, slot step %d min",
            settings.scheduling.lock_backend,
            settings.scheduling.slot_step_minutes,
        )

        try:
            yield
        finally:
            logger.info("Shutting down scheduler...")
            await emit(SystemEvent(event_type=EventType.SYSTEM_SHUTDOWN, actor_id="system", source_module="main"))
            await stop_event_system()
            unsubscribe(audit_on_event)

    logger.info("Scheduler shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="Clinic Scheduling API",
    description="Appointment booking, availability and weekly planning for a small clinic",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(router)
register_error_handlers(app)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "environment": settings.environment,
        "clinic": settings.clinic_name,
    }


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
