from __future__ import annotations

import math
import uuid
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

from ..models import HEALTH_DERIVED_STATUSES, Connector, ConnectorStatus

GroupBy = Literal["environment", "region", "category"]
DEFAULT_REGION_LABEL = "global"


@dataclass(frozen=True)
class Summary:
    total: int = 0
    connected: int = 0
    action_required: int = 0
    byok: int = 0
    byok_configured: int = 0
    open_incidents: int = 0
    health_score: int = 100
    environments: dict[str, int] = field(default_factory=dict)
    last_synced_at: datetime | None = None


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def health_score(connected: int, total: int) -> int:
    if total <= 0:
        return 100
    return int(math.floor(100 * connected / total + 0.5))


def _environment_label(connector: Connector) -> str:
    return connector.environment.value


def _region_label(connector: Connector) -> str:
    regions = connector.regions_json if isinstance(connector.regions_json, list) else []
    return str(regions[0]) if regions else DEFAULT_REGION_LABEL


def _category_label(connector: Connector) -> str:
    return connector.category.value


_LABELERS: dict[str, Callable[[Connector], str]] = {
    "environment": _environment_label,
    "region": _region_label,
    "category": _category_label,
}


def labeler_for(group_by: str) -> Callable[[Connector], str]:
    return _LABELERS.get(group_by, _environment_label)


def build_summary(
    connectors: Iterable[Connector],
    open_incident_counts: Mapping[uuid.UUID, int],
    environment_of: Callable[[Connector], str] = _environment_label,
) -> Summary:
    total = connected = action_required = byok = byok_configured = open_incidents = 0
    environments: dict[str, int] = {}
    last_synced_at: datetime | None = None

    for connector in connectors:
        total += 1
        if connector.status == ConnectorStatus.CONNECTED:
            connected += 1
        elif connector.status in HEALTH_DERIVED_STATUSES:
            action_required += 1
        if connector.requires_api_key:
            byok += 1
            if connector.credential_fingerprint:
                byok_configured += 1
        open_incidents += int(open_incident_counts.get(connector.id, 0))
        label = environment_of(connector)
        environments[label] = environments.get(label, 0) + 1
        synced = as_utc(connector.last_synced_at)
        if synced is not None and (last_synced_at is None or synced > last_synced_at):
            last_synced_at = synced

    return Summary(
        total=total,
        connected=connected,
        action_required=action_required,
        byok=byok,
        byok_configured=byok_configured,
        open_incidents=open_incidents,
        health_score=health_score(connected, total),
        environments=environments,
        last_synced_at=last_synced_at,
    )
