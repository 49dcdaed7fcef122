from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy import JSON as JsonType
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import Uuid


class Base(DeclarativeBase):
    pass


class ConnectorCategory(str, enum.Enum):
    CRM = "crm"
    WORK_MANAGEMENT = "work_management"
    COMMUNICATION = "communication"
    CONTENT = "content"
    AI = "ai"
    OTHER = "other"


class ConnectorStatus(str, enum.Enum):
    NOT_CONNECTED = "not_connected"
    CONNECTED = "connected"
    ACTION_REQUIRED = "action_required"
    DEGRADED = "degraded"


class ConnectorEnvironment(str, enum.Enum):
    PRODUCTION = "production"
    SANDBOX = "sandbox"
    STAGING = "staging"


class SyncFrequency(str, enum.Enum):
    MANUAL = "manual"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


class IncidentSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AuditAction(str, enum.Enum):
    TOGGLE_CONNECTION = "toggle_connection"
    ROTATE_CREDENTIAL = "rotate_credential"
    RESOLVE_INCIDENT = "resolve_incident"
    CREATE_INCIDENT = "create_incident"
    UPDATE_FIELD_MAPPINGS = "update_field_mappings"
    UPDATE_ROLE_ASSIGNMENTS = "update_role_assignments"
    TRIGGER_SYNC = "trigger_sync"


class SyncTrigger(str, enum.Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class SyncOutcome(str, enum.Enum):
    REQUESTED = "requested"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


HEALTH_DERIVED_STATUSES = frozenset({ConnectorStatus.ACTION_REQUIRED, ConnectorStatus.DEGRADED})


def _enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    # Persist the lowercase values so rows match the migration enum types.
    return Enum(enum_cls, name=name, values_callable=lambda members: [member.value for member in members])


class IdMixin:
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class Workspace(Base, IdMixin, TimestampMixin):
    __tablename__ = "workspaces"
    __table_args__ = (UniqueConstraint("name", name="uq_workspaces_name"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Connector(Base, IdMixin, TimestampMixin):
    __tablename__ = "connectors"
    __table_args__ = (
        UniqueConstraint("workspace_id", "key", name="uq_connectors_workspace_key"),
        Index("ix_connectors_workspace_id", "workspace_id"),
        Index("ix_connectors_next_sync_at", "next_sync_at"),
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("workspaces.id"), nullable=False)
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[ConnectorCategory] = mapped_column(
        _enum(ConnectorCategory, name="connector_category_enum"), nullable=False, default=ConnectorCategory.OTHER
    )
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[ConnectorStatus] = mapped_column(
        _enum(ConnectorStatus, name="connector_status_enum"), nullable=False, default=ConnectorStatus.NOT_CONNECTED
    )
    requires_api_key: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    credential_fingerprint: Mapped[str | None] = mapped_column(String(64), nullable=True)
    credential_digest: Mapped[str | None] = mapped_column(String(128), nullable=True)
    credential_rotated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    scopes_json: Mapped[list[str]] = mapped_column(JsonType, nullable=False, default=list)
    regions_json: Mapped[list[str]] = mapped_column(JsonType, nullable=False, default=list)
    compliance_json: Mapped[list[str]] = mapped_column(JsonType, nullable=False, default=list)
    owner: Mapped[str | None] = mapped_column(String(255), nullable=True)
    environment: Mapped[ConnectorEnvironment] = mapped_column(
        _enum(ConnectorEnvironment, name="connector_environment_enum"),
        nullable=False,
        default=ConnectorEnvironment.PRODUCTION,
    )
    sync_frequency: Mapped[SyncFrequency] = mapped_column(
        _enum(SyncFrequency, name="sync_frequency_enum"), nullable=False, default=SyncFrequency.MANUAL
    )
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    sync_failure_reported: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_sync_error: Mapped[str | None] = mapped_column(String(500), nullable=True)


class Incident(Base, IdMixin, TimestampMixin):
    __tablename__ = "incidents"
    __table_args__ = (
        Index("ix_incidents_workspace_id", "workspace_id"),
        Index("ix_incidents_connector_id", "connector_id"),
        Index("ix_incidents_resolved_at", "resolved_at"),
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("workspaces.id"), nullable=False)
    connector_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("connectors.id"), nullable=False)
    connector_key: Mapped[str] = mapped_column(String(100), nullable=False)
    severity: Mapped[IncidentSeverity] = mapped_column(
        _enum(IncidentSeverity, name="incident_severity_enum"), nullable=False
    )
    summary: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    opened_by_id: Mapped[str] = mapped_column(String(255), nullable=False)
    opened_by_name: Mapped[str] = mapped_column(String(255), nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    resolved_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)


class AuditLogEntry(Base, IdMixin):
    __tablename__ = "audit_log_entries"
    __table_args__ = (
        Index("ix_audit_log_entries_workspace_id", "workspace_id"),
        Index("ix_audit_log_entries_created_at", "created_at"),
        UniqueConstraint("workspace_id", "sequence", name="uq_audit_log_entries_workspace_sequence"),
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("workspaces.id"), nullable=False)
    connector_key: Mapped[str] = mapped_column(String(100), nullable=False)
    action: Mapped[AuditAction] = mapped_column(_enum(AuditAction, name="audit_action_enum"), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    details_json: Mapped[dict[str, str]] = mapped_column(JsonType, nullable=False, default=dict)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class SyncRun(Base, IdMixin, TimestampMixin):
    __tablename__ = "sync_runs"
    __table_args__ = (
        Index("ix_sync_runs_workspace_id", "workspace_id"),
        Index("ix_sync_runs_connector_id", "connector_id"),
    )

    workspace_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("workspaces.id"), nullable=False)
    connector_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("connectors.id"), nullable=False)
    connector_key: Mapped[str] = mapped_column(String(100), nullable=False)
    trigger: Mapped[SyncTrigger] = mapped_column(_enum(SyncTrigger, name="sync_trigger_enum"), nullable=False)
    outcome: Mapped[SyncOutcome] = mapped_column(
        _enum(SyncOutcome, name="sync_outcome_enum"), nullable=False, default=SyncOutcome.REQUESTED
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    error: Mapped[str | None] = mapped_column(String(500), nullable=True)
    triggered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(255), nullable=False)


class FieldMapping(Base, IdMixin, TimestampMixin):
    __tablename__ = "field_mappings"
    __table_args__ = (Index("ix_field_mappings_connector_id", "connector_id"),)

    connector_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("connectors.id"), nullable=False)
    external_object: Mapped[str] = mapped_column(String(255), nullable=False)
    local_object: Mapped[str] = mapped_column(String(255), nullable=False)
    mapping_json: Mapped[dict[str, str]] = mapped_column(JsonType, nullable=False, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class RoleAssignment(Base, IdMixin, TimestampMixin):
    __tablename__ = "role_assignments"
    __table_args__ = (Index("ix_role_assignments_connector_id", "connector_id"),)

    connector_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("connectors.id"), nullable=False)
    role_key: Mapped[str] = mapped_column(String(100), nullable=False)
    role_label: Mapped[str] = mapped_column(String(255), nullable=False)
    assignee_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    assignee_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    permissions_json: Mapped[list[str]] = mapped_column(JsonType, nullable=False, default=list)
