from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..errors import CommandValidationError
from ..models import Connector, ConnectorEnvironment, FieldMapping, RoleAssignment, SyncFrequency
from .catalog import role_templates_for

MAX_FIELD_MAPPINGS = 50
MAX_ROLE_ASSIGNMENTS = 100
MAX_SETTING_LIST_ITEMS = 50
MAX_OWNER_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 5000

SETTING_LIST_COLUMNS = {"scopes": "scopes_json", "regions": "regions_json", "compliance": "compliance_json"}


def _clean(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def sanitize_field_mapping(entry: Mapping[str, Any]) -> dict[str, Any] | None:
    external_object = _clean(entry.get("external_object"))
    local_object = _clean(entry.get("local_object"))
    if not external_object or not local_object:
        return None
    source = entry.get("mapping") or entry.get("fields") or {}
    mapping: dict[str, str] = {}
    if isinstance(source, Mapping):
        for local_field, external_field in source.items():
            local_key = _clean(local_field)
            external_key = _clean(external_field)
            if local_key and external_key:
                mapping[local_key] = external_key
    return {
        "external_object": external_object,
        "local_object": local_object,
        "mapping_json": mapping,
        "is_active": entry.get("is_active") is not False,
    }


def sanitize_role_assignment(entry: Mapping[str, Any], connector_key: str) -> dict[str, Any] | None:
    role_key = _clean(entry.get("role_key"))
    if not role_key:
        return None
    template = next((item for item in role_templates_for(connector_key) if item.role_key == role_key), None)
    role_label = _clean(entry.get("role_label")) or (template.role_label if template else role_key)
    assignee_name = _clean(entry.get("assignee_name")) or None
    assignee_email = _clean(entry.get("assignee_email")).lower() or None
    raw_permissions = entry.get("permissions")
    if isinstance(raw_permissions, (list, tuple)):
        permissions = [item.strip() for item in raw_permissions if isinstance(item, str) and item.strip()]
    elif template is not None:
        permissions = list(template.permissions)
    else:
        permissions = []
    user_id = _clean(entry.get("user_id")) or None
    return {
        "role_key": role_key,
        "role_label": role_label,
        "assignee_name": assignee_name,
        "assignee_email": assignee_email,
        "user_id": user_id,
        "permissions_json": permissions,
    }


def field_mappings_for(db: Session, connector: Connector) -> list[FieldMapping]:
    return list(
        db.scalars(
            select(FieldMapping).where(FieldMapping.connector_id == connector.id).order_by(FieldMapping.external_object)
        ).all()
    )


def role_assignments_for(db: Session, connector: Connector) -> list[RoleAssignment]:
    return list(
        db.scalars(
            select(RoleAssignment).where(RoleAssignment.connector_id == connector.id).order_by(RoleAssignment.role_key)
        ).all()
    )


def replace_field_mappings(
    db: Session, connector: Connector, mappings: Iterable[Mapping[str, Any]]
) -> list[FieldMapping]:
    sanitized = [item for item in (sanitize_field_mapping(entry) for entry in mappings) if item is not None]
    if len(sanitized) > MAX_FIELD_MAPPINGS:
        raise CommandValidationError(f"at most {MAX_FIELD_MAPPINGS} field mappings may be configured")
    db.execute(delete(FieldMapping).where(FieldMapping.connector_id == connector.id))
    rows = [FieldMapping(connector_id=connector.id, **item) for item in sanitized]
    db.add_all(rows)
    db.flush()
    return rows


def replace_role_assignments(
    db: Session, connector: Connector, assignments: Iterable[Mapping[str, Any]]
) -> list[RoleAssignment]:
    sanitized = [
        item for item in (sanitize_role_assignment(entry, connector.key) for entry in assignments) if item is not None
    ]
    if len(sanitized) > MAX_ROLE_ASSIGNMENTS:
        raise CommandValidationError(f"at most {MAX_ROLE_ASSIGNMENTS} role assignments may be configured")
    db.execute(delete(RoleAssignment).where(RoleAssignment.connector_id == connector.id))
    rows = [RoleAssignment(connector_id=connector.id, **item) for item in sanitized]
    db.add_all(rows)
    db.flush()
    return rows


def _clean_list(name: str, value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        raise CommandValidationError(f"{name} must be a list of strings")
    cleaned = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    if len(cleaned) > MAX_SETTING_LIST_ITEMS:
        raise CommandValidationError(f"at most {MAX_SETTING_LIST_ITEMS} {name} may be configured")
    return list(dict.fromkeys(cleaned))


def sanitize_settings(updates: Mapping[str, Any]) -> dict[str, Any]:
    """Validate a partial connector settings update.

    Unset and blank values are skipped. Returns model column names mapped to cleaned values;
    an update that changes nothing is rejected.
    """
    sanitized: dict[str, Any] = {}
    frequency = updates.get("sync_frequency")
    if frequency:
        try:
            sanitized["sync_frequency"] = SyncFrequency(frequency)
        except ValueError as exc:
            raise CommandValidationError(f"invalid sync frequency {frequency!r}") from exc
    environment = updates.get("environment")
    if environment:
        try:
            sanitized["environment"] = ConnectorEnvironment(environment)
        except ValueError as exc:
            raise CommandValidationError(f"invalid connector environment {environment!r}") from exc
    for name, column in SETTING_LIST_COLUMNS.items():
        if updates.get(name) is not None:
            sanitized[column] = _clean_list(name, updates[name])
    owner = _clean(updates.get("owner"))
    if owner:
        if len(owner) > MAX_OWNER_LENGTH:
            raise CommandValidationError(f"owner must be at most {MAX_OWNER_LENGTH} characters")
        sanitized["owner"] = owner
    description = _clean(updates.get("description"))
    if description:
        if len(description) > MAX_DESCRIPTION_LENGTH:
            raise CommandValidationError(f"description must be at most {MAX_DESCRIPTION_LENGTH} characters")
        sanitized["description"] = description
    if not sanitized:
        raise CommandValidationError("no connector settings supplied")
    return sanitized


def apply_settings(connector: Connector, sanitized: Mapping[str, Any]) -> list[str]:
    changed: list[str] = []
    for column, value in sanitized.items():
        if getattr(connector, column) != value:
            setattr(connector, column, value)
            changed.append(column.removesuffix("_json"))
    return changed
