from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.orm import Session, sessionmaker

import control_tower_worker.main as worker_main
from control_tower.models import AuditAction, ConnectorStatus
from control_tower.services import audit, connector_registry


@pytest.fixture()
def worker_sessions(monkeypatch: pytest.MonkeyPatch, session_factory: sessionmaker[Session]) -> None:
    monkeypatch.setattr(worker_main, "SessionLocal", session_factory)


def test_ping_task() -> None:
    assert worker_main.ping() == "pong"


def test_scheduled_tick_triggers_due_connectors(
    worker_sessions: None, db_session: Session, workspace_id: uuid.UUID
) -> None:
    past = datetime.now(UTC) - timedelta(minutes=10)
    salesforce = connector_registry.get_connector(db_session, workspace_id, "salesforce")
    salesforce.status = ConnectorStatus.CONNECTED
    salesforce.next_sync_at = past
    hubspot = connector_registry.get_connector(db_session, workspace_id, "hubspot")
    hubspot.status = ConnectorStatus.ACTION_REQUIRED
    hubspot.next_sync_at = past
    db_session.commit()

    assert worker_main.scheduled_sync_tick() == 1

    rows = audit.entries_for(db_session, workspace_id, "salesforce")
    assert [row.action for row in rows] == [AuditAction.TRIGGER_SYNC]
    assert rows[0].actor_id == "system"
    assert rows[0].details_json["trigger"] == "scheduled"
    refreshed = connector_registry.get_connector(db_session, workspace_id, "salesforce")
    db_session.refresh(refreshed)
    assert refreshed.last_synced_at is not None
    assert audit.entries_for(db_session, workspace_id, "hubspot") == []


def test_scheduled_tick_with_nothing_due(worker_sessions: None, workspace_id: uuid.UUID) -> None:
    assert worker_main.scheduled_sync_tick() == 0


def test_record_sync_result_task_degrades_connector(
    worker_sessions: None, db_session: Session, workspace_id: uuid.UUID
) -> None:
    status = worker_main.record_sync_result(str(workspace_id), "slack", False, "HTTP 429 from provider")
    assert status == "degraded"

    [entry] = audit.entries_for(db_session, workspace_id, "slack")
    assert entry.details_json["outcome"] == "failed"
    assert entry.details_json["status"] == "degraded"
    db_session.rollback()
    assert worker_main.record_sync_result(str(workspace_id), "slack", True) == "connected"
