from __future__ import annotations

import logging
import time

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from push_fanout.api.errors import register_exception_handlers
from push_fanout.api.routes import router
from push_fanout.config import settings
from push_fanout.models.db import init_db
from push_fanout.notifications.providers import get_notification_provider
from push_fanout.services.token_cleanup_scheduler import TokenCleanupScheduler

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = FastAPI(
    title="push_fanout",
    description="Push notification fan-out with device token lifecycle management",
    version="0.1.0",
    debug=settings.app_debug,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)
register_exception_handlers(app)
token_cleanup_scheduler = TokenCleanupScheduler()


@app.on_event("startup")
def startup_event() -> None:
    max_attempts = 8
    delay_seconds = 3
    last_error: Exception | None = None

    # Fail fast on bad provider configuration rather than on the first send.
    get_notification_provider()

    for attempt in range(1, max_attempts + 1):
        try:
            init_db()
            logging.info("Database initialization completed", extra={"attempt": attempt, "schema": settings.db_schema})
            token_cleanup_scheduler.start()
            return
        except SQLAlchemyError as exc:
            last_error = exc
            logging.exception(
                "Database initialization failed",
                extra={"attempt": attempt, "max_attempts": max_attempts},
            )
            if attempt < max_attempts:
                time.sleep(delay_seconds)
            continue

    raise RuntimeError("Database initialization failed after retries") from last_error


@app.on_event("shutdown")
def shutdown_event() -> None:
    token_cleanup_scheduler.stop()


app.include_router(router)


def run() -> None:
    import uvicorn

    uvicorn.run("push_fanout.app:app", host=settings.app_host, port=settings.app_port)
