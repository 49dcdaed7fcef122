from __future__ import annotations

import argparse
import uuid

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from .db import SessionLocal
from .log_config import configure_logging
from .models import Connector, Workspace
from .services.catalog import CONNECTOR_CATALOG, ConnectorDefinition
from .services.sync_orchestrator import compute_next_sync_at

logger = structlog.get_logger()

DEV_WORKSPACE_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")


def _connector_from_definition(workspace_id: uuid.UUID, definition: ConnectorDefinition) -> Connector:
    return Connector(
        workspace_id=workspace_id,
        key=definition.key,
        name=definition.name,
        category=definition.category,
        description=definition.description,
        status=definition.initial_status,
        requires_api_key=definition.requires_api_key,
        scopes_json=list(definition.scopes),
        regions_json=list(definition.regions),
        compliance_json=list(definition.compliance),
        owner=definition.owner,
        sync_frequency=definition.sync_frequency,
        next_sync_at=compute_next_sync_at(definition.sync_frequency),
    )


def seed_workspace(
    db: Session,
    workspace_id: uuid.UUID,
    name: str,
    definitions: tuple[ConnectorDefinition, ...] = CONNECTOR_CATALOG,
) -> Workspace:
    workspace = db.get(Workspace, workspace_id)
    if workspace is None:
        workspace = Workspace(id=workspace_id, name=name)
        db.add(workspace)
        db.flush()

    existing = set(db.scalars(select(Connector.key).where(Connector.workspace_id == workspace_id)).all())
    created = 0
    for definition in definitions:
        if definition.key in existing:
            continue
        db.add(_connector_from_definition(workspace_id, definition))
        created += 1
    db.flush()
    logger.info("workspace_seeded", workspace_id=str(workspace_id), connectors_created=created)
    return workspace


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a workspace with the default connector catalog.")
    parser.add_argument("--workspace-id", type=uuid.UUID, default=DEV_WORKSPACE_ID)
    parser.add_argument("--name", default="Control Tower Dev Workspace")
    args = parser.parse_args()

    configure_logging()
    with SessionLocal() as db:
        seed_workspace(db, args.workspace_id, args.name)
        db.commit()
    print(f"Seed complete: workspace={args.workspace_id}")


if __name__ == "__main__":
    main()
