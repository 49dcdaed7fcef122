"""control tower connectors, incidents, audit and sync tables

Revision ID: 0001_control_tower_init
Revises:
Create Date: 2026-10-19 09:00:00
"""

from typing import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001_control_tower_init"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    connector_category_enum = sa.Enum(
        "crm", "work_management", "communication", "content", "ai", "other", name="connector_category_enum"
    )
    connector_status_enum = sa.Enum(
        "not_connected", "connected", "action_required", "degraded", name="connector_status_enum"
    )
    connector_environment_enum = sa.Enum("production", "sandbox", "staging", name="connector_environment_enum")
    sync_frequency_enum = sa.Enum("manual", "hourly", "daily", "weekly", name="sync_frequency_enum")
    incident_severity_enum = sa.Enum("low", "medium", "high", "critical", name="incident_severity_enum")
    audit_action_enum = sa.Enum(
        "toggle_connection",
        "rotate_credential",
        "resolve_incident",
        "create_incident",
        "update_field_mappings",
        "update_role_assignments",
        "trigger_sync",
        name="audit_action_enum",
    )
    sync_trigger_enum = sa.Enum("manual", "scheduled", name="sync_trigger_enum")
    sync_outcome_enum = sa.Enum("requested", "succeeded", "failed", name="sync_outcome_enum")

    op.create_table(
        "workspaces",
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_workspaces_name"),
    )

    op.create_table(
        "connectors",
        sa.Column("workspace_id", sa.Uuid(), nullable=False),
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", connector_category_enum, nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", connector_status_enum, nullable=False),
        sa.Column("requires_api_key", sa.Boolean(), nullable=False),
        sa.Column("credential_fingerprint", sa.String(length=64), nullable=True),
        sa.Column("credential_digest", sa.String(length=128), nullable=True),
        sa.Column("credential_rotated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scopes_json", sa.JSON(), nullable=False),
        sa.Column("regions_json", sa.JSON(), nullable=False),
        sa.Column("compliance_json", sa.JSON(), nullable=False),
        sa.Column("owner", sa.String(length=255), nullable=True),
        sa.Column("environment", connector_environment_enum, nullable=False),
        sa.Column("sync_frequency", sync_frequency_enum, nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sync_failure_reported", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_sync_error", sa.String(length=500), nullable=True),
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workspace_id", "key", name="uq_connectors_workspace_key"),
    )
    op.create_index("ix_connectors_workspace_id", "connectors", ["workspace_id"], unique=False)
    op.create_index("ix_connectors_next_sync_at", "connectors", ["next_sync_at"], unique=False)

    op.create_table(
        "incidents",
        sa.Column("workspace_id", sa.Uuid(), nullable=False),
        sa.Column("connector_id", sa.Uuid(), nullable=False),
        sa.Column("connector_key", sa.String(length=100), nullable=False),
        sa.Column("severity", incident_severity_enum, nullable=False),
        sa.Column("summary", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("opened_by_id", sa.String(length=255), nullable=False),
        sa.Column("opened_by_name", sa.String(length=255), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_by_id", sa.String(length=255), nullable=True),
        sa.Column("resolved_by_name", sa.String(length=255), nullable=True),
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"]),
        sa.ForeignKeyConstraint(["connector_id"], ["connectors.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_incidents_workspace_id", "incidents", ["workspace_id"], unique=False)
    op.create_index("ix_incidents_connector_id", "incidents", ["connector_id"], unique=False)
    op.create_index("ix_incidents_resolved_at", "incidents", ["resolved_at"], unique=False)

    op.create_table(
        "audit_log_entries",
        sa.Column("workspace_id", sa.Uuid(), nullable=False),
        sa.Column("connector_key", sa.String(length=100), nullable=False),
        sa.Column("action", audit_action_enum, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("actor_name", sa.String(length=255), nullable=False),
        sa.Column("details_json", sa.JSON(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("workspace_id", "sequence", name="uq_audit_log_entries_workspace_sequence"),
    )
    op.create_index("ix_audit_log_entries_workspace_id", "audit_log_entries", ["workspace_id"], unique=False)
    op.create_index("ix_audit_log_entries_created_at", "audit_log_entries", ["created_at"], unique=False)

    op.create_table(
        "sync_runs",
        sa.Column("workspace_id", sa.Uuid(), nullable=False),
        sa.Column("connector_id", sa.Uuid(), nullable=False),
        sa.Column("connector_key", sa.String(length=100), nullable=False),
        sa.Column("trigger", sync_trigger_enum, nullable=False),
        sa.Column("outcome", sync_outcome_enum, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("error", sa.String(length=500), nullable=True),
        sa.Column("triggered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("actor_name", sa.String(length=255), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["workspace_id"], ["workspaces.id"]),
        sa.ForeignKeyConstraint(["connector_id"], ["connectors.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_sync_runs_workspace_id", "sync_runs", ["workspace_id"], unique=False)
    op.create_index("ix_sync_runs_connector_id", "sync_runs", ["connector_id"], unique=False)

    op.create_table(
        "field_mappings",
        sa.Column("connector_id", sa.Uuid(), nullable=False),
        sa.Column("external_object", sa.String(length=255), nullable=False),
        sa.Column("local_object", sa.String(length=255), nullable=False),
        sa.Column("mapping_json", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["connector_id"], ["connectors.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_field_mappings_connector_id", "field_mappings", ["connector_id"], unique=False)

    op.create_table(
        "role_assignments",
        sa.Column("connector_id", sa.Uuid(), nullable=False),
        sa.Column("role_key", sa.String(length=100), nullable=False),
        sa.Column("role_label", sa.String(length=255), nullable=False),
        sa.Column("assignee_name", sa.String(length=255), nullable=True),
        sa.Column("assignee_email", sa.String(length=320), nullable=True),
        sa.Column("user_id", sa.String(length=255), nullable=True),
        sa.Column("permissions_json", sa.JSON(), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["connector_id"], ["connectors.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_role_assignments_connector_id", "role_assignments", ["connector_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_role_assignments_connector_id", table_name="role_assignments")
    op.drop_table("role_assignments")
    op.drop_index("ix_field_mappings_connector_id", table_name="field_mappings")
    op.drop_table("field_mappings")
    op.drop_index("ix_sync_runs_connector_id", table_name="sync_runs")
    op.drop_index("ix_sync_runs_workspace_id", table_name="sync_runs")
    op.drop_table("sync_runs")
    op.drop_index("ix_audit_log_entries_created_at", table_name="audit_log_entries")
    op.drop_index("ix_audit_log_entries_workspace_id", table_name="audit_log_entries")
    op.drop_table("audit_log_entries")
    op.drop_index("ix_incidents_resolved_at", table_name="incidents")
    op.drop_index("ix_incidents_connector_id", table_name="incidents")
    op.drop_index("ix_incidents_workspace_id", table_name="incidents")
    op.drop_table("incidents")
    op.drop_index("ix_connectors_next_sync_at", table_name="connectors")
    op.drop_index("ix_connectors_workspace_id", table_name="connectors")
    op.drop_table("connectors")
    op.drop_table("workspaces")

    bind = op.get_bind()
    for enum_name in (
        "sync_outcome_enum",
        "sync_trigger_enum",
        "audit_action_enum",
        "incident_severity_enum",
        "sync_frequency_enum",
        "connector_environment_enum",
        "connector_status_enum",
        "connector_category_enum",
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
