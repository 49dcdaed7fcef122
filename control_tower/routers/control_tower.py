from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import AuditLogEntry, Incident, SyncRun
from ..schemas import (
    AuditLogEntryResponse,
    CommandResponse,
    ConnectorResponse,
    ConnectorSettingsUpdateRequest,
    FieldMappingPayload,
    FieldMappingsUpdateRequest,
    IncidentCommandResponse,
    IncidentCreateRequest,
    IncidentResponse,
    OverviewResponse,
    RoleAssignmentResponse,
    RoleAssignmentsUpdateRequest,
    RotateCredentialRequest,
    RotateCredentialResponse,
    SummaryResponse,
    SyncCommandResponse,
    SyncRunResponse,
    ToggleConnectionRequest,
    TriggerSyncRequest,
)
from ..services import control_tower
from ..services.control_tower import CommandResult, ConnectorSnapshot
from ..services.summary import GroupBy, Summary, as_utc
from ..tenancy import ControlTowerContext, get_request_context

router = APIRouter(prefix="/workspaces/{workspace_id}/control-tower", tags=["control-tower"])


def _serialize_incident(row: Incident) -> IncidentResponse:
    return IncidentResponse(
        id=row.id,
        connector_key=row.connector_key,
        severity=row.severity,
        summary=row.summary,
        description=row.description,
        opened_at=as_utc(row.opened_at),
        opened_by_id=row.opened_by_id,
        opened_by_name=row.opened_by_name,
        resolved_at=as_utc(row.resolved_at),
        resolved_by_id=row.resolved_by_id,
        resolved_by_name=row.resolved_by_name,
    )


def _serialize_connector(snapshot: ConnectorSnapshot) -> ConnectorResponse:
    row = snapshot.connector
    return ConnectorResponse(
        id=row.id,
        key=row.key,
        name=row.name,
        category=row.category,
        description=row.description,
        status=row.status,
        requires_api_key=row.requires_api_key,
        credential_fingerprint=row.credential_fingerprint,
        credential_rotated_at=as_utc(row.credential_rotated_at),
        scopes=list(row.scopes_json or []),
        regions=list(row.regions_json or []),
        compliance=list(row.compliance_json or []),
        owner=row.owner,
        environment=row.environment,
        sync_frequency=row.sync_frequency,
        last_synced_at=as_utc(row.last_synced_at),
        next_sync_at=as_utc(row.next_sync_at),
        sync_failure_reported=row.sync_failure_reported,
        last_sync_error=row.last_sync_error,
        incidents=[_serialize_incident(item) for item in snapshot.incidents],
        field_mappings=[
            FieldMappingPayload(
                external_object=item.external_object,
                local_object=item.local_object,
                mapping=dict(item.mapping_json or {}),
                is_active=item.is_active,
            )
            for item in snapshot.field_mappings
        ],
        role_assignments=[
            RoleAssignmentResponse(
                role_key=item.role_key,
                role_label=item.role_label,
                assignee_name=item.assignee_name,
                assignee_email=item.assignee_email,
                user_id=item.user_id,
                permissions=list(item.permissions_json or []),
            )
            for item in snapshot.role_assignments
        ],
    )


def _serialize_summary(summary: Summary) -> SummaryResponse:
    return SummaryResponse(
        total=summary.total,
        connected=summary.connected,
        action_required=summary.action_required,
        byok=summary.byok,
        byok_configured=summary.byok_configured,
        open_incidents=summary.open_incidents,
        health_score=summary.health_score,
        environments=dict(summary.environments),
        last_synced_at=summary.last_synced_at,
    )


def _serialize_audit(row: AuditLogEntry) -> AuditLogEntryResponse:
    return AuditLogEntryResponse(
        id=row.id,
        connector_key=row.connector_key,
        action=row.action,
        actor_id=row.actor_id,
        actor_name=row.actor_name,
        details=dict(row.details_json or {}),
        created_at=as_utc(row.created_at),
    )


def _serialize_sync_run(row: SyncRun) -> SyncRunResponse:
    return SyncRunResponse(
        id=row.id,
        connector_key=row.connector_key,
        trigger=row.trigger,
        outcome=row.outcome,
        notes=row.notes,
        error=row.error,
        triggered_at=as_utc(row.triggered_at),
        actor_id=row.actor_id,
        actor_name=row.actor_name,
    )


def _command_fields(result: CommandResult) -> dict[str, object]:
    return {
        "connector": _serialize_connector(result.connector),
        "summary": _serialize_summary(result.summary),
        "audit_entry": _serialize_audit(result.audit_entry),
    }


@router.get("", response_model=OverviewResponse)
def get_overview(
    group_by: GroupBy = Query(default="environment"),
    audit_limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    context: ControlTowerContext = Depends(get_request_context),
) -> OverviewResponse:
    result = control_tower.overview(db, context.workspace_id, group_by=group_by, audit_limit=audit_limit)
    return OverviewResponse(
        workspace_id=result.workspace_id,
        connectors=[_serialize_connector(item) for item in result.connectors],
        summary=_serialize_summary(result.summary),
        audit_log=[_serialize_audit(item) for item in result.audit_log],
        defaults=result.defaults,
    )


@router.get("/audit", response_model=list[AuditLogEntryResponse])
def list_audit_log(
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    context: ControlTowerContext = Depends(get_request_context),
) -> list[AuditLogEntryResponse]:
    rows = control_tower.recent_audit(db, context.workspace_id, limit)
    return [_serialize_audit(row) for row in rows]


@router.patch("/connectors/{connector_key}", response_model=CommandResponse)
def update_connector_settings(
    connector_key: str,
    payload: ConnectorSettingsUpdateRequest,
    db: Session = Depends(get_db),
    context: ControlTowerContext = Depends(get_request_context),
) -> CommandResponse:
    result = control_tower.update_connector_settings(db, context, connector_key, payload.model_dump(exclude_none=True))
    return CommandResponse(**_command_fields(result))


@router.post("/connectors/{connector_key}/toggle", response_model=CommandResponse)
def toggle_connection(
    connector_key: str,
    payload: ToggleConnectionRequest,
    db: Session = Depends(get_db),
    context: ControlTowerContext = Depends(get_request_context),
) -> CommandResponse:
    result = control_tower.toggle_connection(db, context, connector_key, payload.next_status)
    return CommandResponse(**_command_fields(result))


@router.post("/connectors/{connector_key}/credential", response_model=RotateCredentialResponse)
def rotate_credential(
    connector_key: str,
    payload: RotateCredentialRequest,
    db: Session = Depends(get_db),
    context: ControlTowerContext = Depends(get_request_context),
) -> RotateCredentialResponse:
    result = control_tower.rotate_credential(db, context, connector_key, payload.secret)
    return RotateCredentialResponse(fingerprint=result.fingerprint or "", **_command_fields(result))


@router.post("/connectors/{connector_key}/incidents", response_model=IncidentCommandResponse)
def create_incident(
    connector_key: str,
    payload: IncidentCreateRequest,
    db: Session = Depends(get_db),
    context: ControlTowerContext = Depends(get_request_context),
) -> IncidentCommandResponse:
    result = control_tower.create_incident(
        db,
        context,
        connector_key,
        severity=payload.severity,
        summary=payload.summary,
        description=payload.description,
    )
    return IncidentCommandResponse(incident=_serialize_incident(result.incident), **_command_fields(result))


@router.post(
    "/connectors/{connector_key}/incidents/{incident_id}/resolve",
    response_model=IncidentCommandResponse,
)
def resolve_incident(
    connector_key: str,
    incident_id: uuid.UUID,
    db: Session = Depends(get_db),
    context: ControlTowerContext = Depends(get_request_context),
) -> IncidentCommandResponse:
    result = control_tower.resolve_incident(db, context, connector_key, incident_id)
    return IncidentCommandResponse(incident=_serialize_incident(result.incident), **_command_fields(result))


@router.put("/connectors/{connector_key}/field-mappings", response_model=CommandResponse)
def update_field_mappings(
    connector_key: str,
    payload: FieldMappingsUpdateRequest,
    db: Session = Depends(get_db),
    context: ControlTowerContext = Depends(get_request_context),
) -> CommandResponse:
    result = control_tower.update_field_mappings(
        db,
        context,
        connector_key,
        [item.model_dump() for item in payload.mappings],
    )
    return CommandResponse(**_command_fields(result))


@router.put("/connectors/{connector_key}/role-assignments", response_model=CommandResponse)
def update_role_assignments(
    connector_key: str,
    payload: RoleAssignmentsUpdateRequest,
    db: Session = Depends(get_db),
    context: ControlTowerContext = Depends(get_request_context),
) -> CommandResponse:
    result = control_tower.update_role_assignments(
        db,
        context,
        connector_key,
        [item.model_dump(exclude_none=True) for item in payload.assignments],
    )
    return CommandResponse(**_command_fields(result))


@router.post("/connectors/{connector_key}/sync", response_model=SyncCommandResponse)
def trigger_sync(
    connector_key: str,
    payload: TriggerSyncRequest,
    db: Session = Depends(get_db),
    context: ControlTowerContext = Depends(get_request_context),
) -> SyncCommandResponse:
    result = control_tower.trigger_sync(db, context, connector_key, payload.trigger, payload.notes)
    return SyncCommandResponse(sync_run=_serialize_sync_run(result.sync_run), **_command_fields(result))
