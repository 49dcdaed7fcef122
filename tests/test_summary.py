from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from control_tower.models import Connector, ConnectorCategory, ConnectorEnvironment, ConnectorStatus
from control_tower.services.summary import as_utc, build_summary, health_score, labeler_for


def _connector(
    key: str,
    status: ConnectorStatus,
    requires_api_key: bool = False,
    fingerprint: str | None = None,
    environment: ConnectorEnvironment = ConnectorEnvironment.PRODUCTION,
    regions: list[str] | None = None,
    category: ConnectorCategory = ConnectorCategory.OTHER,
    last_synced_at: datetime | None = None,
) -> Connector:
    return Connector(
        id=uuid.uuid4(),
        workspace_id=uuid.uuid4(),
        key=key,
        name=key.title(),
        status=status,
        requires_api_key=requires_api_key,
        credential_fingerprint=fingerprint,
        environment=environment,
        regions_json=regions if regions is not None else [],
        category=category,
        last_synced_at=last_synced_at,
    )


@pytest.mark.parametrize(
    ("connected", "total", "expected"),
    [(0, 0, 100), (0, 4, 0), (1, 3, 33), (2, 3, 67), (1, 8, 13), (1, 200, 1), (1, 400, 0), (9, 9, 100)],
)
def test_health_score_rounds_half_up(connected: int, total: int, expected: int) -> None:
    assert health_score(connected, total) == expected


def test_empty_catalog_summary() -> None:
    summary = build_summary([], {})
    assert summary.total == 0
    assert summary.health_score == 100
    assert summary.environments == {}
    assert summary.last_synced_at is None


def test_summary_counts() -> None:
    newest = datetime(2026, 5, 2, 9, 30, tzinfo=UTC)
    connectors = [
        _connector("slack", ConnectorStatus.CONNECTED, last_synced_at=newest - timedelta(days=1)),
        _connector("x", ConnectorStatus.ACTION_REQUIRED, last_synced_at=newest.replace(tzinfo=None)),
        _connector("hubspot", ConnectorStatus.DEGRADED, environment=ConnectorEnvironment.SANDBOX),
        _connector("openai", ConnectorStatus.NOT_CONNECTED, requires_api_key=True),
        _connector("claude", ConnectorStatus.CONNECTED, requires_api_key=True, fingerprint="sha256:0a1b2c3d"),
    ]
    counts = {connectors[1].id: 2, connectors[2].id: 1}

    summary = build_summary(connectors, counts)

    assert summary.total == 5
    assert summary.connected == 2
    assert summary.action_required == 2
    assert summary.byok == 2
    assert summary.byok_configured == 1
    assert summary.open_incidents == 3
    assert summary.health_score == 40
    assert summary.environments == {"production": 4, "sandbox": 1}
    assert summary.last_synced_at == newest


def test_group_by_region_uses_first_region_or_global() -> None:
    connectors = [
        _connector("slack", ConnectorStatus.CONNECTED, regions=["us-west-2"]),
        _connector("drive", ConnectorStatus.CONNECTED, regions=["us-west-2", "asia-southeast1"]),
        _connector("x", ConnectorStatus.CONNECTED, regions=[]),
    ]
    summary = build_summary(connectors, {}, labeler_for("region"))
    assert summary.environments == {"us-west-2": 2, "global": 1}


def test_group_by_category() -> None:
    connectors = [
        _connector("salesforce", ConnectorStatus.CONNECTED, category=ConnectorCategory.CRM),
        _connector("hubspot", ConnectorStatus.CONNECTED, category=ConnectorCategory.CRM),
        _connector("openai", ConnectorStatus.CONNECTED, category=ConnectorCategory.AI),
    ]
    summary = build_summary(connectors, {}, labeler_for("category"))
    assert summary.environments == {"crm": 2, "ai": 1}


def test_unknown_group_by_falls_back_to_environment() -> None:
    connectors = [_connector("slack", ConnectorStatus.CONNECTED, environment=ConnectorEnvironment.STAGING)]
    assert build_summary(connectors, {}, labeler_for("owner")).environments == {"staging": 1}


def test_as_utc_treats_naive_values_as_utc() -> None:
    naive = datetime(2026, 1, 1, 12, 0)
    assert as_utc(naive) == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
    assert as_utc(None) is None
