# api/main.py
import logging
import threading
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel

from monitor.loop import Monitor, MonitorStatus

logger = logging.getLogger(__name__)


# ----- Schemas -----
class UsageModel(BaseModel):
    free_bytes: int
    used_bytes: int
    disk_total_bytes: int
    capacity_bytes: int
    usage_ratio: Optional[float] = None


class EvictionModel(BaseModel):
    boundary: datetime
    attempted: list[str]
    failed: list[str]


class StatusModel(BaseModel):
    state: str
    remaining_rounds: int
    ticks: int
    threshold: float
    last_tick_at: Optional[datetime] = None
    last_usage: Optional[UsageModel] = None
    last_eviction: Optional[EvictionModel] = None
    last_error: Optional[str] = None


def status_model(status: MonitorStatus, threshold: float) -> StatusModel:
    usage = None
    if status.last_sample is not None:
        s = status.last_sample
        usage = UsageModel(
            free_bytes=s.free_bytes,
            used_bytes=s.used_bytes,
            disk_total_bytes=s.disk_total_bytes,
            capacity_bytes=s.capacity_bytes,
            usage_ratio=s.usage_ratio,
        )
    eviction = None
    if status.last_eviction is not None:
        e = status.last_eviction
        eviction = EvictionModel(boundary=e.boundary, attempted=list(e.attempted), failed=list(e.failed))
    return StatusModel(
        state=status.state.value,
        remaining_rounds=status.remaining_rounds,
        ticks=status.ticks,
        threshold=threshold,
        last_tick_at=status.last_tick_at,
        last_usage=usage,
        last_eviction=eviction,
        last_error=status.last_error,
    )


def create_app(monitor: Monitor) -> FastAPI:
    """
    Read-only status API. Handlers only look at the snapshot the monitor
    publishes after each round and never touch the ClickHouse handle.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Status API started for table %s", monitor.config.table_name)
        yield
        logger.info("Status API stopped")

    app = FastAPI(title="ClickHouse Monitor", version="0.1.0", lifespan=lifespan)

    # ----- Routes -----
    @app.get("/health")
    def health():
        status = monitor.status
        if status.last_error:
            return {"status": "degraded", "error": status.last_error}
        return {"status": "ok"}

    @app.get("/status", response_model=StatusModel)
    def get_status():
        return status_model(monitor.status, monitor.config.threshold)

    return app


def serve_in_background(monitor: Monitor, host: str, port: int) -> threading.Thread:
    """Serve the status API from a daemon thread; the monitor keeps the main thread."""
    server = uvicorn.Server(uvicorn.Config(create_app(monitor), host=host, port=port, log_level="warning"))
    t = threading.Thread(target=server.run, name="status-api", daemon=True)
    t.start()
    logger.info("Status API listening on %s:%d", host, port)
    return t
