"""Command and query entry point for the integration control tower.

Every mutating command runs the same envelope: check the actor, take the per-connector
lock, load the connector row for update, mutate, append the audit entry in the same unit
of work, commit, then rebuild the connector snapshot and summary from committed state.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import CommandValidationError, PersistenceError
from ..models import (
    AuditAction,
    AuditLogEntry,
    Connector,
    ConnectorCategory,
    ConnectorEnvironment,
    ConnectorStatus,
    FieldMapping,
    Incident,
    IncidentSeverity,
    RoleAssignment,
    SyncFrequency,
    SyncRun,
    SyncTrigger,
)
from ..tenancy import Actor, ControlTowerContext, ensure_workspace, require_system_actor, require_user_actor
from . import audit, connector_config, connector_registry, incident_ledger, sync_orchestrator
from .catalog import catalog_defaults
from .locks import connector_lock
from .summary import GroupBy, Summary, build_summary, labeler_for

logger = structlog.get_logger()

TOGGLE_TARGETS = (ConnectorStatus.CONNECTED, ConnectorStatus.NOT_CONNECTED)


@dataclass(frozen=True)
class ConnectorSnapshot:
    connector: Connector
    incidents: list[Incident] = field(default_factory=list)
    field_mappings: list[FieldMapping] = field(default_factory=list)
    role_assignments: list[RoleAssignment] = field(default_factory=list)


@dataclass(frozen=True)
class CommandResult:
    connector: ConnectorSnapshot
    summary: Summary
    audit_entry: AuditLogEntry
    fingerprint: str | None = None
    incident: Incident | None = None
    sync_run: SyncRun | None = None


@dataclass(frozen=True)
class Overview:
    workspace_id: uuid.UUID
    connectors: list[ConnectorSnapshot]
    summary: Summary
    audit_log: list[AuditLogEntry]
    defaults: dict[str, object]


def control_tower_defaults() -> dict[str, object]:
    defaults: dict[str, object] = {
        "categories": [item.value for item in ConnectorCategory],
        "statuses": [item.value for item in ConnectorStatus],
        "toggle_statuses": [item.value for item in TOGGLE_TARGETS],
        "incident_severities": [item.value for item in IncidentSeverity],
        "sync_triggers": [item.value for item in SyncTrigger],
        "sync_frequencies": [item.value for item in SyncFrequency],
        "environments": [item.value for item in ConnectorEnvironment],
        "audit_actions": [item.value for item in AuditAction],
    }
    defaults.update(catalog_defaults())
    return defaults


@contextmanager
def _command(db: Session, context: ControlTowerContext, connector_key: str) -> Iterator[Connector]:
    ensure_workspace(db, context.workspace_id)
    with connector_lock(context.workspace_id, connector_key):
        try:
            connector = connector_registry.get_connector(db, context.workspace_id, connector_key, for_update=True)
            yield connector
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("control_tower_command_failed", connector_key=connector_key, error=str(exc))
            raise PersistenceError() from exc
        except BaseException:
            db.rollback()
            raise


def _snapshot(db: Session, connector: Connector) -> ConnectorSnapshot:
    return ConnectorSnapshot(
        connector=connector,
        incidents=incident_ledger.open_incidents(db, connector),
        field_mappings=connector_config.field_mappings_for(db, connector),
        role_assignments=connector_config.role_assignments_for(db, connector),
    )


def summarize(db: Session, workspace_id: uuid.UUID, group_by: GroupBy | str = "environment") -> Summary:
    connectors = connector_registry.list_connectors(db, workspace_id)
    open_by_connector = incident_ledger.open_incidents_by_connector(db, workspace_id)
    counts = {connector_id: len(rows) for connector_id, rows in open_by_connector.items()}
    return build_summary(connectors, counts, labeler_for(group_by))


def _result(
    db: Session,
    context: ControlTowerContext,
    connector: Connector,
    entry: AuditLogEntry,
    **extra: Any,
) -> CommandResult:
    db.refresh(connector)
    return CommandResult(
        connector=_snapshot(db, connector),
        summary=summarize(db, context.workspace_id),
        audit_entry=entry,
        **extra,
    )


def overview(
    db: Session,
    workspace_id: uuid.UUID,
    group_by: GroupBy | str = "environment",
    audit_limit: int | None = None,
) -> Overview:
    ensure_workspace(db, workspace_id)
    connectors = connector_registry.list_connectors(db, workspace_id)
    open_by_connector = incident_ledger.open_incidents_by_connector(db, workspace_id)
    connector_ids = [connector.id for connector in connectors]

    mappings: dict[uuid.UUID, list[FieldMapping]] = {}
    assignments: dict[uuid.UUID, list[RoleAssignment]] = {}
    if connector_ids:
        for row in db.scalars(select(FieldMapping).where(FieldMapping.connector_id.in_(connector_ids))).all():
            mappings.setdefault(row.connector_id, []).append(row)
        for row in db.scalars(select(RoleAssignment).where(RoleAssignment.connector_id.in_(connector_ids))).all():
            assignments.setdefault(row.connector_id, []).append(row)

    snapshots = [
        ConnectorSnapshot(
            connector=connector,
            incidents=open_by_connector.get(connector.id, []),
            field_mappings=mappings.get(connector.id, []),
            role_assignments=assignments.get(connector.id, []),
        )
        for connector in connectors
    ]
    counts = {connector_id: len(rows) for connector_id, rows in open_by_connector.items()}
    return Overview(
        workspace_id=workspace_id,
        connectors=snapshots,
        summary=build_summary(connectors, counts, labeler_for(group_by)),
        audit_log=audit.recent(db, workspace_id, audit_limit),
        defaults=control_tower_defaults(),
    )


def recent_audit(db: Session, workspace_id: uuid.UUID, limit: int | None = None) -> list[AuditLogEntry]:
    ensure_workspace(db, workspace_id)
    return audit.recent(db, workspace_id, limit)


def _parse_toggle_target(next_status: ConnectorStatus | str) -> ConnectorStatus:
    try:
        target = ConnectorStatus(next_status)
    except ValueError:
        target = None
    if target not in TOGGLE_TARGETS:
        raise CommandValidationError(
            f"invalid toggle status {next_status!r}; expected connected or not_connected"
        )
    return target


def toggle_connection(
    db: Session,
    context: ControlTowerContext,
    connector_key: str,
    next_status: ConnectorStatus | str,
) -> CommandResult:
    actor = require_user_actor(context)
    target = _parse_toggle_target(next_status)
    with _command(db, context, connector_key) as connector:
        previous = connector.status
        purged = False
        if target == ConnectorStatus.CONNECTED:
            connector_registry.enable(connector, incident_ledger.count_open(db, connector) > 0)
            if previous == ConnectorStatus.NOT_CONNECTED or connector.next_sync_at is None:
                sync_orchestrator.schedule_next(connector)
        else:
            purged = connector_registry.disable(connector)
        db.flush()
        entry = audit.append(
            db,
            context.workspace_id,
            connector.key,
            actor,
            audit.ToggleConnectionDetails(
                previous_status=previous.value,
                status=connector.status.value,
                credential_purged=purged,
            ),
        )
    logger.info(
        "connector_toggled",
        connector_key=connector_key,
        previous_status=previous.value,
        status=target.value,
        actor_id=actor.id,
    )
    return _result(db, context, connector, entry)


def rotate_credential(
    db: Session,
    context: ControlTowerContext,
    connector_key: str,
    raw_secret: str,
) -> CommandResult:
    actor = require_user_actor(context)
    with _command(db, context, connector_key) as connector:
        previous_fingerprint = connector.credential_fingerprint
        fingerprint = connector_registry.rotate_credential(connector, raw_secret)
        db.flush()
        entry = audit.append(
            db,
            context.workspace_id,
            connector.key,
            actor,
            audit.RotateCredentialDetails(
                fingerprint=fingerprint.display,
                previous_fingerprint=previous_fingerprint,
            ),
        )
    return _result(db, context, connector, entry, fingerprint=fingerprint.display)


def create_incident(
    db: Session,
    context: ControlTowerContext,
    connector_key: str,
    severity: IncidentSeverity | str,
    summary: str,
    description: str | None = None,
) -> CommandResult:
    actor = require_user_actor(context)
    with _command(db, context, connector_key) as connector:
        incident = incident_ledger.open_incident(db, connector, severity, summary, description, actor)
        entry = audit.append(
            db,
            context.workspace_id,
            connector.key,
            actor,
            audit.CreateIncidentDetails(
                incident_id=str(incident.id),
                severity=incident.severity.value,
                summary=incident.summary,
                status=connector.status.value,
            ),
        )
    return _result(db, context, connector, entry, incident=incident)


def resolve_incident(
    db: Session,
    context: ControlTowerContext,
    connector_key: str,
    incident_id: uuid.UUID,
) -> CommandResult:
    actor = require_user_actor(context)
    with _command(db, context, connector_key) as connector:
        incident, remaining = incident_ledger.resolve_incident(db, connector, incident_id, actor)
        entry = audit.append(
            db,
            context.workspace_id,
            connector.key,
            actor,
            audit.ResolveIncidentDetails(
                incident_id=str(incident.id),
                remaining_open=remaining,
                status=connector.status.value,
            ),
        )
    return _result(db, context, connector, entry, incident=incident)


def update_field_mappings(
    db: Session,
    context: ControlTowerContext,
    connector_key: str,
    mappings: Iterable[Mapping[str, Any]],
) -> CommandResult:
    actor = require_user_actor(context)
    with _command(db, context, connector_key) as connector:
        rows = connector_config.replace_field_mappings(db, connector, mappings)
        entry = audit.append(
            db,
            context.workspace_id,
            connector.key,
            actor,
            audit.UpdateFieldMappingsDetails(
                mapping_count=len(rows),
                objects=",".join(sorted({row.external_object for row in rows})),
            ),
        )
    return _result(db, context, connector, entry)


def update_role_assignments(
    db: Session,
    context: ControlTowerContext,
    connector_key: str,
    assignments: Iterable[Mapping[str, Any]],
) -> CommandResult:
    actor = require_user_actor(context)
    with _command(db, context, connector_key) as connector:
        rows = connector_config.replace_role_assignments(db, connector, assignments)
        entry = audit.append(
            db,
            context.workspace_id,
            connector.key,
            actor,
            audit.UpdateRoleAssignmentsDetails(
                assignment_count=len(rows),
                roles=",".join(sorted({row.role_key for row in rows})),
            ),
        )
    return _result(db, context, connector, entry)


def _sync_actor(context: ControlTowerContext, trigger: SyncTrigger) -> Actor:
    if trigger == SyncTrigger.SCHEDULED and context.actor is not None and context.actor.is_system:
        return context.actor
    return require_user_actor(context)


def trigger_sync(
    db: Session,
    context: ControlTowerContext,
    connector_key: str,
    trigger: SyncTrigger | str = SyncTrigger.MANUAL,
    notes: str | None = None,
) -> CommandResult:
    parsed = sync_orchestrator.parse_trigger(trigger)
    actor = _sync_actor(context, parsed)
    with _command(db, context, connector_key) as connector:
        run = sync_orchestrator.trigger_sync(db, connector, parsed, notes, actor)
        entry = audit.append(
            db,
            context.workspace_id,
            connector.key,
            actor,
            audit.TriggerSyncDetails(
                trigger=parsed.value,
                outcome=run.outcome.value,
                sync_run_id=str(run.id),
                notes=run.notes,
            ),
        )
    return _result(db, context, connector, entry, sync_run=run)


def record_sync_result(
    db: Session,
    context: ControlTowerContext,
    connector_key: str,
    succeeded: bool,
    error: str | None = None,
) -> CommandResult:
    actor = require_system_actor(context)
    with _command(db, context, connector_key) as connector:
        run = sync_orchestrator.record_sync_result(
            db,
            connector,
            succeeded=succeeded,
            error=error,
            has_open_incidents=incident_ledger.count_open(db, connector) > 0,
            actor=actor,
        )
        entry = audit.append(
            db,
            context.workspace_id,
            connector.key,
            actor,
            audit.TriggerSyncDetails(
                trigger=run.trigger.value,
                outcome=run.outcome.value,
                sync_run_id=str(run.id),
                error=run.error,
                status=connector.status.value,
            ),
        )
    return _result(db, context, connector, entry, sync_run=run)


def update_connector_settings(
    db: Session,
    context: ControlTowerContext,
    connector_key: str,
    updates: Mapping[str, Any],
) -> CommandResult:
    actor = require_user_actor(context)
    sanitized = connector_config.sanitize_settings(updates)
    with _command(db, context, connector_key) as connector:
        changed = connector_config.apply_settings(connector, sanitized)
        if "sync_frequency" in changed:
            sync_orchestrator.schedule_next(connector)
        db.flush()
        # Settings edits share the connection audit action; details name the changed fields.
        entry = audit.append(
            db,
            context.workspace_id,
            connector.key,
            actor,
            audit.ToggleConnectionDetails(
                previous_status=connector.status.value,
                status=connector.status.value,
                changed=",".join(changed),
                sync_frequency=connector.sync_frequency.value,
                environment=connector.environment.value,
            ),
        )
    logger.info("connector_settings_updated", connector_key=connector_key, changed=changed, actor_id=actor.id)
    return _result(db, context, connector, entry)
