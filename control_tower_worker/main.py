import os
import uuid
from datetime import datetime, timezone

import structlog
from celery import Celery

from control_tower.db import SessionLocal
from control_tower.errors import ControlTowerError
from control_tower.log_config import configure_logging
from control_tower.services import control_tower
from control_tower.services.sync_orchestrator import due_for_sync
from control_tower.settings import settings
from control_tower.tenancy import system_context

configure_logging()
logger = structlog.get_logger()

broker_url = os.getenv("REDIS_URL", settings.redis_url)
app = Celery("control-tower-worker", broker=broker_url, backend=broker_url)
app.conf.beat_schedule = {
    "scheduled-sync-tick": {
        "task": "worker.sync.scheduled_tick",
        "schedule": float(settings.scheduled_sync_interval_seconds),
    },
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@app.task(name="worker.ping")
def ping() -> str:
    return "pong"


@app.task(name="worker.sync.scheduled_tick")
def scheduled_sync_tick() -> int:
    triggered = 0
    with SessionLocal() as db:
        due = due_for_sync(db, now=_now(), limit=settings.scheduled_sync_batch_size)
        for workspace_id, connector_key in due:
            try:
                control_tower.trigger_sync(
                    db,
                    system_context(workspace_id),
                    connector_key,
                    trigger="scheduled",
                    notes="scheduled sync",
                )
            except ControlTowerError as exc:
                logger.warning(
                    "scheduled_sync_skipped",
                    workspace_id=str(workspace_id),
                    connector_key=connector_key,
                    error=exc.code,
                )
                continue
            triggered += 1
    logger.info("scheduled_sync_tick_complete", due=len(due), triggered=triggered)
    return triggered


@app.task(name="worker.sync.record_result")
def record_sync_result(workspace_id: str, connector_key: str, succeeded: bool, error: str | None = None) -> str:
    with SessionLocal() as db:
        result = control_tower.record_sync_result(
            db,
            system_context(uuid.UUID(workspace_id)),
            connector_key,
            succeeded=succeeded,
            error=error,
        )
        return result.connector.connector.status.value
