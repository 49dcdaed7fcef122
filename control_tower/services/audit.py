from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Annotated, Literal, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import desc, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import PersistenceError
from ..models import AuditAction, AuditLogEntry
from ..settings import settings
from ..tenancy import Actor

logger = structlog.get_logger()

RECENT_MAX_LIMIT = 100


class _Details(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    def as_map(self) -> dict[str, str]:
        payload = self.model_dump(mode="json", exclude={"action"}, exclude_none=True)
        return {key: str(value).lower() if isinstance(value, bool) else str(value) for key, value in payload.items()}


class ToggleConnectionDetails(_Details):
    action: Literal[AuditAction.TOGGLE_CONNECTION] = AuditAction.TOGGLE_CONNECTION
    previous_status: str
    status: str
    credential_purged: bool = False
    changed: str | None = None
    sync_frequency: str | None = None
    environment: str | None = None


class RotateCredentialDetails(_Details):
    action: Literal[AuditAction.ROTATE_CREDENTIAL] = AuditAction.ROTATE_CREDENTIAL
    fingerprint: str
    previous_fingerprint: str | None = None


class CreateIncidentDetails(_Details):
    action: Literal[AuditAction.CREATE_INCIDENT] = AuditAction.CREATE_INCIDENT
    incident_id: str
    severity: str
    summary: str
    status: str


class ResolveIncidentDetails(_Details):
    action: Literal[AuditAction.RESOLVE_INCIDENT] = AuditAction.RESOLVE_INCIDENT
    incident_id: str
    remaining_open: int
    status: str


class UpdateFieldMappingsDetails(_Details):
    action: Literal[AuditAction.UPDATE_FIELD_MAPPINGS] = AuditAction.UPDATE_FIELD_MAPPINGS
    mapping_count: int
    objects: str = ""


class UpdateRoleAssignmentsDetails(_Details):
    action: Literal[AuditAction.UPDATE_ROLE_ASSIGNMENTS] = AuditAction.UPDATE_ROLE_ASSIGNMENTS
    assignment_count: int
    roles: str = ""


class TriggerSyncDetails(_Details):
    action: Literal[AuditAction.TRIGGER_SYNC] = AuditAction.TRIGGER_SYNC
    trigger: str
    outcome: str
    sync_run_id: str
    notes: str | None = None
    error: str | None = None
    status: str | None = None


AuditDetails = Annotated[
    Union[
        ToggleConnectionDetails,
        RotateCredentialDetails,
        CreateIncidentDetails,
        ResolveIncidentDetails,
        UpdateFieldMappingsDetails,
        UpdateRoleAssignmentsDetails,
        TriggerSyncDetails,
    ],
    Field(discriminator="action"),
]


def _now() -> datetime:
    return datetime.now(UTC)


def _next_sequence(db: Session, workspace_id: uuid.UUID) -> int:
    current = db.scalar(
        select(func.max(AuditLogEntry.sequence)).where(AuditLogEntry.workspace_id == workspace_id)
    )
    return int(current or 0) + 1


def _insert_entry(db: Session, entry: AuditLogEntry) -> None:
    with db.begin_nested():
        entry.sequence = _next_sequence(db, entry.workspace_id)
        db.add(entry)
        db.flush()


def append(
    db: Session,
    workspace_id: uuid.UUID,
    connector_key: str,
    actor: Actor,
    details: AuditDetails,
    max_attempts: int | None = None,
) -> AuditLogEntry:
    attempts = max(1, max_attempts or settings.audit_append_max_attempts)
    last_error: SQLAlchemyError | None = None
    for attempt in range(1, attempts + 1):
        entry = AuditLogEntry(
            workspace_id=workspace_id,
            connector_key=connector_key,
            action=details.action,
            actor_id=actor.id,
            actor_name=actor.name,
            details_json=details.as_map(),
            created_at=_now(),
        )
        try:
            _insert_entry(db, entry)
        except SQLAlchemyError as exc:
            last_error = exc
            logger.warning(
                "audit_append_failed",
                connector_key=connector_key,
                action=details.action.value,
                attempt=attempt,
                max_attempts=attempts,
                error=str(exc),
            )
            continue
        return entry
    logger.error("audit_append_exhausted", connector_key=connector_key, action=details.action.value)
    raise PersistenceError("audit log unavailable; the command was not applied, re-check connector state") from last_error


def recent(db: Session, workspace_id: uuid.UUID, limit: int | None = None) -> list[AuditLogEntry]:
    bounded = max(1, min(RECENT_MAX_LIMIT, limit or settings.audit_recent_default_limit))
    return list(
        db.scalars(
            select(AuditLogEntry)
            .where(AuditLogEntry.workspace_id == workspace_id)
            .order_by(desc(AuditLogEntry.created_at), desc(AuditLogEntry.sequence))
            .limit(bounded)
        ).all()
    )


def entries_for(db: Session, workspace_id: uuid.UUID, connector_key: str) -> list[AuditLogEntry]:
    return list(
        db.scalars(
            select(AuditLogEntry)
            .where(AuditLogEntry.workspace_id == workspace_id, AuditLogEntry.connector_key == connector_key)
            .order_by(AuditLogEntry.sequence)
        ).all()
    )
