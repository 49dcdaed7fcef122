from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from .models import (
    AuditAction,
    ConnectorCategory,
    ConnectorEnvironment,
    ConnectorStatus,
    IncidentSeverity,
    SyncFrequency,
    SyncOutcome,
    SyncTrigger,
)


class IncidentResponse(BaseModel):
    id: uuid.UUID
    connector_key: str
    severity: IncidentSeverity
    summary: str
    description: str | None
    opened_at: datetime
    opened_by_id: str
    opened_by_name: str
    resolved_at: datetime | None
    resolved_by_id: str | None
    resolved_by_name: str | None


class FieldMappingPayload(BaseModel):
    external_object: str = Field(min_length=1, max_length=255)
    local_object: str = Field(min_length=1, max_length=255)
    mapping: dict[str, str] = Field(default_factory=dict)
    is_active: bool = True


class RoleAssignmentPayload(BaseModel):
    role_key: str = Field(min_length=1, max_length=100)
    role_label: str | None = Field(default=None, max_length=255)
    assignee_name: str | None = Field(default=None, max_length=255)
    assignee_email: str | None = Field(default=None, max_length=320)
    user_id: str | None = Field(default=None, max_length=255)
    permissions: list[str] | None = None


class RoleAssignmentResponse(BaseModel):
    role_key: str
    role_label: str
    assignee_name: str | None
    assignee_email: str | None
    user_id: str | None
    permissions: list[str]


class ConnectorResponse(BaseModel):
    id: uuid.UUID
    key: str
    name: str
    category: ConnectorCategory
    description: str
    status: ConnectorStatus
    requires_api_key: bool
    credential_fingerprint: str | None
    credential_rotated_at: datetime | None
    scopes: list[str]
    regions: list[str]
    compliance: list[str]
    owner: str | None
    environment: ConnectorEnvironment
    sync_frequency: SyncFrequency
    last_synced_at: datetime | None
    next_sync_at: datetime | None
    sync_failure_reported: bool
    last_sync_error: str | None
    incidents: list[IncidentResponse]
    field_mappings: list[FieldMappingPayload]
    role_assignments: list[RoleAssignmentResponse]


class SummaryResponse(BaseModel):
    total: int
    connected: int
    action_required: int
    byok: int
    byok_configured: int
    open_incidents: int
    health_score: int
    environments: dict[str, int]
    last_synced_at: datetime | None


class AuditLogEntryResponse(BaseModel):
    id: uuid.UUID
    connector_key: str
    action: AuditAction
    actor_id: str
    actor_name: str
    details: dict[str, str]
    created_at: datetime


class SyncRunResponse(BaseModel):
    id: uuid.UUID
    connector_key: str
    trigger: SyncTrigger
    outcome: SyncOutcome
    notes: str | None
    error: str | None
    triggered_at: datetime
    actor_id: str
    actor_name: str


class OverviewResponse(BaseModel):
    workspace_id: uuid.UUID
    connectors: list[ConnectorResponse]
    summary: SummaryResponse
    audit_log: list[AuditLogEntryResponse]
    defaults: dict[str, object]


class CommandResponse(BaseModel):
    connector: ConnectorResponse
    summary: SummaryResponse
    audit_entry: AuditLogEntryResponse


class RotateCredentialResponse(CommandResponse):
    fingerprint: str


class IncidentCommandResponse(CommandResponse):
    incident: IncidentResponse


class SyncCommandResponse(CommandResponse):
    sync_run: SyncRunResponse


class ToggleConnectionRequest(BaseModel):
    next_status: ConnectorStatus


class RotateCredentialRequest(BaseModel):
    secret: str = Field(repr=False)


class IncidentCreateRequest(BaseModel):
    severity: IncidentSeverity
    summary: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=5000)


class FieldMappingsUpdateRequest(BaseModel):
    mappings: list[FieldMappingPayload] = Field(default_factory=list, max_length=50)


class RoleAssignmentsUpdateRequest(BaseModel):
    assignments: list[RoleAssignmentPayload] = Field(default_factory=list, max_length=100)


class TriggerSyncRequest(BaseModel):
    trigger: SyncTrigger = SyncTrigger.MANUAL
    notes: str | None = Field(default=None, max_length=2000)


class ConnectorSettingsUpdateRequest(BaseModel):
    sync_frequency: SyncFrequency | None = None
    environment: ConnectorEnvironment | None = None
    scopes: list[str] | None = Field(default=None, max_length=50)
    regions: list[str] | None = Field(default=None, max_length=50)
    compliance: list[str] | None = Field(default=None, max_length=50)
    owner: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=5000)
