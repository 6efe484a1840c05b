import logging
import os
from typing import Callable, Optional

from fastapi import FastAPI

from airwatch.alerts import AlertEngine
from airwatch.api import router
from airwatch.query import QueryResolver
from airwatch.store import Broadcaster, ReadingStore
from airwatch.vector import utcnow

LOGGER = logging.getLogger(__name__)

# Keep server chatter down; our own loggers follow AIRWATCH_LOG_LEVEL.
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("fastapi").setLevel(logging.WARNING)


def create_app(store: Optional[ReadingStore] = None,
               broadcaster: Optional[Broadcaster] = None,
               clock: Callable = utcnow) -> FastAPI:
    store = store or ReadingStore()
    broadcaster = broadcaster or Broadcaster()

    app = FastAPI(title="Airwatch Analytics Service")
    app.state.store = store
    app.state.broadcaster = broadcaster
    app.state.clock = clock
    app.state.alert_engine = AlertEngine(store.persist_alert, broadcaster.broadcast, clock=clock)
    app.state.resolver = QueryResolver(store, clock=clock)
    app.include_router(router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.on_event("startup")
    def _startup():
        LOGGER.info("Airwatch service ready (history capacity %d)", store.capacity)

    return app


logging.basicConfig(level=os.getenv("AIRWATCH_LOG_LEVEL", "INFO").upper())
app = create_app()
