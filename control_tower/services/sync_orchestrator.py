from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import CommandValidationError, ConnectorNotReadyError
from ..models import Connector, ConnectorStatus, SyncFrequency, SyncOutcome, SyncRun, SyncTrigger
from ..tenancy import Actor
from .connector_registry import clear_sync_failure, report_sync_failure

logger = structlog.get_logger()

NOTES_MAX_LENGTH = 2000

_FREQUENCY_INTERVALS: dict[SyncFrequency, timedelta] = {
    SyncFrequency.HOURLY: timedelta(hours=1),
    SyncFrequency.DAILY: timedelta(days=1),
    SyncFrequency.WEEKLY: timedelta(days=7),
}


def _now() -> datetime:
    return datetime.now(UTC)


def compute_next_sync_at(frequency: SyncFrequency, from_time: datetime | None = None) -> datetime | None:
    interval = _FREQUENCY_INTERVALS.get(frequency)
    if interval is None:
        return None
    return (from_time or _now()) + interval


def parse_trigger(value: SyncTrigger | str) -> SyncTrigger:
    try:
        return SyncTrigger(value)
    except ValueError as exc:
        raise CommandValidationError(f"invalid sync trigger {value!r}; expected manual or scheduled") from exc


def schedule_next(connector: Connector, from_time: datetime | None = None) -> None:
    connector.next_sync_at = compute_next_sync_at(connector.sync_frequency, from_time)


def trigger_sync(
    db: Session,
    connector: Connector,
    trigger: SyncTrigger | str,
    notes: str | None,
    actor: Actor,
) -> SyncRun:
    parsed = parse_trigger(trigger)
    if connector.status != ConnectorStatus.CONNECTED:
        raise ConnectorNotReadyError(connector.key, connector.status.value)
    cleaned_notes = notes.strip() if notes else None
    if cleaned_notes and len(cleaned_notes) > NOTES_MAX_LENGTH:
        raise CommandValidationError(f"sync notes must be at most {NOTES_MAX_LENGTH} characters")

    triggered_at = _now()
    run = SyncRun(
        workspace_id=connector.workspace_id,
        connector_id=connector.id,
        connector_key=connector.key,
        trigger=parsed,
        outcome=SyncOutcome.REQUESTED,
        notes=cleaned_notes or None,
        triggered_at=triggered_at,
        actor_id=actor.id,
        actor_name=actor.name,
    )
    db.add(run)
    connector.last_synced_at = triggered_at
    schedule_next(connector, triggered_at)
    db.flush()
    logger.info("sync_triggered", connector_key=connector.key, trigger=parsed.value, sync_run_id=str(run.id))
    return run


def record_sync_result(
    db: Session,
    connector: Connector,
    succeeded: bool,
    error: str | None,
    has_open_incidents: bool,
    actor: Actor,
    trigger: SyncTrigger = SyncTrigger.SCHEDULED,
) -> SyncRun:
    if connector.status == ConnectorStatus.NOT_CONNECTED:
        raise ConnectorNotReadyError(connector.key, connector.status.value)

    finished_at = _now()
    run = SyncRun(
        workspace_id=connector.workspace_id,
        connector_id=connector.id,
        connector_key=connector.key,
        trigger=trigger,
        outcome=SyncOutcome.SUCCEEDED if succeeded else SyncOutcome.FAILED,
        error=None if succeeded else (error or "sync failed")[:500],
        triggered_at=finished_at,
        actor_id=actor.id,
        actor_name=actor.name,
    )
    db.add(run)
    if succeeded:
        connector.last_synced_at = finished_at
        clear_sync_failure(connector, has_open_incidents)
    else:
        report_sync_failure(connector, error, has_open_incidents)
    db.flush()
    logger.info(
        "sync_result_recorded",
        connector_key=connector.key,
        outcome=run.outcome.value,
        status=connector.status.value,
    )
    return run


def due_for_sync(db: Session, now: datetime | None = None, limit: int = 100) -> list[tuple[uuid.UUID, str]]:
    rows = db.execute(
        select(Connector.workspace_id, Connector.key)
        .where(
            Connector.status == ConnectorStatus.CONNECTED,
            Connector.sync_frequency != SyncFrequency.MANUAL,
            Connector.next_sync_at.is_not(None),
            Connector.next_sync_at <= (now or _now()),
        )
        .order_by(Connector.next_sync_at)
        .limit(limit)
    ).all()
    return [(row[0], row[1]) for row in rows]
