from __future__ import annotations

import uuid
from dataclasses import dataclass

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .db import get_db
from .errors import UnauthorizedActorError, WorkspaceNotFoundError
from .models import Workspace
from .settings import settings

SYSTEM_ACTOR_ID = "system"


@dataclass(frozen=True)
class Actor:
    id: str
    name: str

    @property
    def is_system(self) -> bool:
        return self.id == SYSTEM_ACTOR_ID


SYSTEM_ACTOR = Actor(id=SYSTEM_ACTOR_ID, name="System")


@dataclass(frozen=True)
class ControlTowerContext:
    workspace_id: uuid.UUID
    actor: Actor | None


def require_user_actor(context: ControlTowerContext) -> Actor:
    actor = context.actor
    if actor is None or not actor.id.strip() or not actor.name.strip():
        raise UnauthorizedActorError("an authenticated actor is required for this command")
    if actor.is_system:
        raise UnauthorizedActorError("system-attributed commands cannot be issued by a user session")
    return actor


def require_system_actor(context: ControlTowerContext) -> Actor:
    if context.actor is None or not context.actor.is_system:
        raise UnauthorizedActorError("only internal scheduled processes may record sync results")
    return context.actor


def ensure_workspace(db: Session, workspace_id: uuid.UUID) -> Workspace:
    workspace = db.get(Workspace, workspace_id)
    if workspace is None:
        raise WorkspaceNotFoundError(workspace_id)
    return workspace


def system_context(workspace_id: uuid.UUID) -> ControlTowerContext:
    return ControlTowerContext(workspace_id=workspace_id, actor=SYSTEM_ACTOR)


def _resolve_actor(actor_id: str | None, actor_name: str | None) -> Actor | None:
    if settings.dev_auth_bypass:
        return Actor(id=settings.dev_actor_id, name=settings.dev_actor_name)
    if not actor_id or not actor_id.strip():
        return None
    if actor_id.strip() == SYSTEM_ACTOR_ID:
        raise UnauthorizedActorError("the system actor is reserved for internal scheduled processes")
    name = (actor_name or "").strip() or actor_id.strip()
    return Actor(id=actor_id.strip(), name=name)


def get_request_context(
    workspace_id: uuid.UUID,
    db: Session = Depends(get_db),
    x_control_tower_actor_id: str | None = Header(default=None),
    x_control_tower_actor_name: str | None = Header(default=None),
) -> ControlTowerContext:
    ensure_workspace(db, workspace_id)
    return ControlTowerContext(
        workspace_id=workspace_id,
        actor=_resolve_actor(x_control_tower_actor_id, x_control_tower_actor_name),
    )
