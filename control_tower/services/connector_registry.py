"""Connector lifecycle state machine.

    not_connected -> connected -> {degraded, action_required} -> connected | not_connected

`not_connected` is only ever entered or left through an explicit operator toggle; health
inputs (open incidents, reported sync failures) never move a connector out of it.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import ConnectorNotFoundError, MissingCredentialError
from ..models import Connector, ConnectorStatus
from .credential_hasher import CredentialFingerprint, hash_secret

logger = structlog.get_logger()


def _now() -> datetime:
    return datetime.now(UTC)


def get_connector(db: Session, workspace_id: uuid.UUID, key: str, for_update: bool = False) -> Connector:
    stmt = select(Connector).where(Connector.workspace_id == workspace_id, Connector.key == key)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    connector = db.scalar(stmt)
    if connector is None:
        raise ConnectorNotFoundError(key)
    return connector


def list_connectors(db: Session, workspace_id: uuid.UUID) -> list[Connector]:
    return list(
        db.scalars(
            select(Connector).where(Connector.workspace_id == workspace_id).order_by(Connector.key)
        ).all()
    )


def evaluate_health(connector: Connector, has_open_incidents: bool) -> ConnectorStatus:
    if connector.status == ConnectorStatus.NOT_CONNECTED:
        return ConnectorStatus.NOT_CONNECTED
    if connector.sync_failure_reported:
        return ConnectorStatus.DEGRADED
    if has_open_incidents:
        return ConnectorStatus.ACTION_REQUIRED
    return ConnectorStatus.CONNECTED


def record_health_change(connector: Connector, has_open_incidents: bool) -> ConnectorStatus:
    previous = connector.status
    connector.status = evaluate_health(connector, has_open_incidents)
    if connector.status != previous:
        logger.info(
            "connector_health_changed",
            connector_key=connector.key,
            previous_status=previous.value,
            status=connector.status.value,
        )
    return connector.status


def enable(connector: Connector, has_open_incidents: bool) -> ConnectorStatus:
    if connector.requires_api_key and not connector.credential_fingerprint:
        raise MissingCredentialError(connector.key)
    connector.status = ConnectorStatus.CONNECTED
    return record_health_change(connector, has_open_incidents)


def disable(connector: Connector) -> bool:
    purged = connector.credential_fingerprint is not None or connector.credential_digest is not None
    connector.status = ConnectorStatus.NOT_CONNECTED
    connector.credential_fingerprint = None
    connector.credential_digest = None
    connector.credential_rotated_at = None
    connector.sync_failure_reported = False
    connector.last_sync_error = None
    connector.next_sync_at = None
    if purged:
        logger.info("connector_credential_purged", connector_key=connector.key)
    return purged


def rotate_credential(connector: Connector, raw_secret: str) -> CredentialFingerprint:
    fingerprint = hash_secret(raw_secret)
    connector.credential_fingerprint = fingerprint.display
    connector.credential_digest = fingerprint.digest
    connector.credential_rotated_at = _now()
    logger.info("connector_credential_rotated", connector_key=connector.key, fingerprint=fingerprint.display)
    return fingerprint


def report_sync_failure(connector: Connector, error: str | None, has_open_incidents: bool) -> ConnectorStatus:
    connector.sync_failure_reported = True
    connector.last_sync_error = (error or "sync failed")[:500]
    return record_health_change(connector, has_open_incidents)


def clear_sync_failure(connector: Connector, has_open_incidents: bool) -> ConnectorStatus:
    connector.sync_failure_reported = False
    connector.last_sync_error = None
    return record_health_change(connector, has_open_incidents)
