from __future__ import annotations

import uuid
from datetime import UTC, datetime

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..errors import CommandValidationError, IncidentNotFoundError
from ..models import Connector, Incident, IncidentSeverity
from ..tenancy import Actor
from .connector_registry import record_health_change

logger = structlog.get_logger()

SUMMARY_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 5000


def _now() -> datetime:
    return datetime.now(UTC)


def _parse_severity(value: IncidentSeverity | str) -> IncidentSeverity:
    try:
        return IncidentSeverity(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in IncidentSeverity)
        raise CommandValidationError(f"invalid incident severity {value!r}; expected one of {allowed}") from exc


def open_incidents(db: Session, connector: Connector) -> list[Incident]:
    return list(
        db.scalars(
            select(Incident)
            .where(Incident.connector_id == connector.id, Incident.resolved_at.is_(None))
            .order_by(Incident.opened_at.desc())
        ).all()
    )


def count_open(db: Session, connector: Connector) -> int:
    return int(
        db.scalar(
            select(func.count(Incident.id)).where(
                Incident.connector_id == connector.id,
                Incident.resolved_at.is_(None),
            )
        )
        or 0
    )


def open_incidents_by_connector(db: Session, workspace_id: uuid.UUID) -> dict[uuid.UUID, list[Incident]]:
    rows = db.scalars(
        select(Incident)
        .where(Incident.workspace_id == workspace_id, Incident.resolved_at.is_(None))
        .order_by(Incident.opened_at.desc())
    ).all()
    grouped: dict[uuid.UUID, list[Incident]] = {}
    for row in rows:
        grouped.setdefault(row.connector_id, []).append(row)
    return grouped


def open_incident(
    db: Session,
    connector: Connector,
    severity: IncidentSeverity | str,
    summary: str,
    description: str | None,
    actor: Actor,
) -> Incident:
    parsed = _parse_severity(severity)
    cleaned_summary = (summary or "").strip()
    if not cleaned_summary:
        raise CommandValidationError("incident summary is required")
    if len(cleaned_summary) > SUMMARY_MAX_LENGTH:
        raise CommandValidationError(f"incident summary must be at most {SUMMARY_MAX_LENGTH} characters")
    cleaned_description = description.strip() if description else None
    if cleaned_description and len(cleaned_description) > DESCRIPTION_MAX_LENGTH:
        raise CommandValidationError(f"incident description must be at most {DESCRIPTION_MAX_LENGTH} characters")

    incident = Incident(
        workspace_id=connector.workspace_id,
        connector_id=connector.id,
        connector_key=connector.key,
        severity=parsed,
        summary=cleaned_summary,
        description=cleaned_description or None,
        opened_at=_now(),
        opened_by_id=actor.id,
        opened_by_name=actor.name,
    )
    db.add(incident)
    db.flush()
    record_health_change(connector, has_open_incidents=True)
    logger.info(
        "incident_opened",
        connector_key=connector.key,
        incident_id=str(incident.id),
        severity=parsed.value,
    )
    return incident


def resolve_incident(db: Session, connector: Connector, incident_id: uuid.UUID, actor: Actor) -> tuple[Incident, int]:
    incident = db.scalar(
        select(Incident)
        .where(Incident.id == incident_id, Incident.connector_id == connector.id)
        .with_for_update()
    )
    if incident is None or incident.resolved_at is not None:
        raise IncidentNotFoundError(connector.key, incident_id)

    incident.resolved_at = _now()
    incident.resolved_by_id = actor.id
    incident.resolved_by_name = actor.name
    db.flush()

    remaining = count_open(db, connector)
    record_health_change(connector, has_open_incidents=remaining > 0)
    logger.info(
        "incident_resolved",
        connector_key=connector.key,
        incident_id=str(incident.id),
        remaining_open=remaining,
    )
    return incident, remaining
