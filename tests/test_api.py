from __future__ import annotations

import uuid
from collections.abc import Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from control_tower.db import get_db
from control_tower.main import app
from control_tower.settings import settings


@pytest.fixture()
def api_db(db_session: Session, workspace_id: uuid.UUID) -> Generator[Session, None, None]:
    def _override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = _override
    try:
        yield db_session
    finally:
        app.dependency_overrides.pop(get_db, None)


def _base(workspace_id: uuid.UUID) -> str:
    return f"/workspaces/{workspace_id}/control-tower"


async def test_health_endpoint() -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_ready_reports_dependency_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    def _down() -> bool:
        raise ConnectionRefusedError("db down")

    monkeypatch.setattr("control_tower.routers.health.check_db_health", _down)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/ready")

    assert response.status_code == 503
    assert response.json()["detail"]["checks"]["db"] == "down"


async def test_ready_when_database_reachable(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("control_tower.routers.health.check_db_health", lambda: True)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/ready")

    assert response.status_code == 200
    assert response.json()["status"] == "ready"


async def test_overview_lists_catalog(api_db: Session, workspace_id: uuid.UUID) -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get(_base(workspace_id), params={"group_by": "region"})

    assert response.status_code == 200
    assert response.headers["X-Request-Id"]
    body = response.json()
    assert body["workspace_id"] == str(workspace_id)
    assert len(body["connectors"]) == 9
    assert body["summary"]["total"] == 9
    assert body["summary"]["connected"] == 3
    assert body["summary"]["health_score"] == 33
    assert sum(body["summary"]["environments"].values()) == 9
    assert body["audit_log"] == []
    assert "salesforce" in body["defaults"]["connectors"]


async def test_rotate_and_enable_flow(
    api_db: Session, workspace_id: uuid.UUID, actor_headers: dict[str, str]
) -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        rotated = await client.post(
            f"{_base(workspace_id)}/connectors/openai/credential",
            json={"secret": "sk-openai-live-123"},
            headers=actor_headers,
        )
        enabled = await client.post(
            f"{_base(workspace_id)}/connectors/openai/toggle",
            json={"next_status": "connected"},
            headers=actor_headers,
        )
        audit_log = await client.get(f"{_base(workspace_id)}/audit", params={"limit": 5})

    assert rotated.status_code == 200
    rotated_body = rotated.json()
    assert rotated_body["fingerprint"].startswith("sha256:")
    assert "sk-openai-live-123" not in rotated.text
    assert rotated_body["connector"]["status"] == "not_connected"
    assert rotated_body["audit_entry"]["actor_name"] == actor_headers["X-Control-Tower-Actor-Name"]

    assert enabled.status_code == 200
    assert enabled.json()["connector"]["status"] == "connected"
    assert enabled.json()["summary"]["byok_configured"] == 1

    assert [entry["action"] for entry in audit_log.json()] == ["toggle_connection", "rotate_credential"]


async def test_enable_without_credential_returns_actionable_error(
    api_db: Session, workspace_id: uuid.UUID, actor_headers: dict[str, str]
) -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post(
            f"{_base(workspace_id)}/connectors/claude/toggle",
            json={"next_status": "connected"},
            headers=actor_headers,
        )

    assert response.status_code == 409
    assert response.json()["error"] == "missing_credential"
    assert "rotate a key" in response.json()["detail"]


async def test_incident_create_and_resolve(
    api_db: Session, workspace_id: uuid.UUID, actor_headers: dict[str, str]
) -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        created = await client.post(
            f"{_base(workspace_id)}/connectors/slack/incidents",
            json={"severity": "critical", "summary": "Bot token revoked", "description": "401 from chat.postMessage"},
            headers=actor_headers,
        )
        incident_id = created.json()["incident"]["id"]
        resolved = await client.post(
            f"{_base(workspace_id)}/connectors/slack/incidents/{incident_id}/resolve",
            headers=actor_headers,
        )
        again = await client.post(
            f"{_base(workspace_id)}/connectors/slack/incidents/{incident_id}/resolve",
            headers=actor_headers,
        )

    assert created.status_code == 200
    assert created.json()["connector"]["status"] == "action_required"
    assert created.json()["summary"]["open_incidents"] == 1
    assert resolved.status_code == 200
    assert resolved.json()["connector"]["status"] == "connected"
    assert resolved.json()["incident"]["resolved_by_id"] == actor_headers["X-Control-Tower-Actor-Id"]
    assert again.status_code == 404
    assert again.json()["error"] == "incident_not_found"


async def test_sync_on_disconnected_connector_rejected(
    api_db: Session, workspace_id: uuid.UUID, actor_headers: dict[str, str]
) -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post(
            f"{_base(workspace_id)}/connectors/deepseek/sync",
            json={"trigger": "manual"},
            headers=actor_headers,
        )

    assert response.status_code == 409
    assert response.json()["error"] == "connector_not_ready"


async def test_manual_sync_returns_run(
    api_db: Session, workspace_id: uuid.UUID, actor_headers: dict[str, str]
) -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post(
            f"{_base(workspace_id)}/connectors/google-drive/sync",
            json={"notes": "refresh templates"},
            headers=actor_headers,
        )

    assert response.status_code == 200
    body = response.json()
    assert body["sync_run"]["outcome"] == "requested"
    assert body["sync_run"]["trigger"] == "manual"
    assert body["connector"]["last_synced_at"] is not None


async def test_configuration_endpoints(
    api_db: Session, workspace_id: uuid.UUID, actor_headers: dict[str, str]
) -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        mappings = await client.put(
            f"{_base(workspace_id)}/connectors/hubspot/field-mappings",
            json={"mappings": [{"external_object": "Contact", "local_object": "Candidate", "mapping": {"email": "email"}}]},
            headers=actor_headers,
        )
        roles = await client.put(
            f"{_base(workspace_id)}/connectors/hubspot/role-assignments",
            json={"assignments": [{"role_key": "viewer", "assignee_email": "Viewer@Example.com"}]},
            headers=actor_headers,
        )

    assert mappings.status_code == 200
    assert mappings.json()["connector"]["field_mappings"][0]["mapping"] == {"email": "email"}
    assert roles.status_code == 200
    [assignment] = roles.json()["connector"]["role_assignments"]
    assert assignment["role_label"] == "Viewer"
    assert assignment["assignee_email"] == "viewer@example.com"
    assert assignment["permissions"] == ["view_data"]


async def test_mutation_without_actor_is_unauthorized(api_db: Session, workspace_id: uuid.UUID) -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post(
            f"{_base(workspace_id)}/connectors/slack/toggle",
            json={"next_status": "not_connected"},
        )
        overview = await client.get(_base(workspace_id))

    assert response.status_code == 401
    assert response.json()["error"] == "unauthorized_actor"
    slack = next(item for item in overview.json()["connectors"] if item["key"] == "slack")
    assert slack["status"] == "connected"


async def test_system_actor_header_is_rejected(api_db: Session, workspace_id: uuid.UUID) -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post(
            f"{_base(workspace_id)}/connectors/slack/sync",
            json={"trigger": "scheduled"},
            headers={"X-Control-Tower-Actor-Id": "system", "X-Control-Tower-Actor-Name": "System"},
        )

    assert response.status_code == 401


async def test_dev_bypass_supplies_actor(
    api_db: Session, workspace_id: uuid.UUID, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(settings, "dev_auth_bypass", True)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post(
            f"{_base(workspace_id)}/connectors/x/incidents",
            json={"severity": "low", "summary": "Rate limit warnings"},
        )

    assert response.status_code == 200
    assert response.json()["audit_entry"]["actor_id"] == settings.dev_actor_id


async def test_unknown_workspace_and_connector(
    api_db: Session, workspace_id: uuid.UUID, actor_headers: dict[str, str]
) -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        missing_workspace = await client.get(_base(uuid.uuid4()))
        missing_connector = await client.post(
            f"{_base(workspace_id)}/connectors/myspace/toggle",
            json={"next_status": "connected"},
            headers=actor_headers,
        )
        bad_secret = await client.post(
            f"{_base(workspace_id)}/connectors/openai/credential",
            json={"secret": "   "},
            headers=actor_headers,
        )

    assert missing_workspace.status_code == 404
    assert missing_workspace.json()["error"] == "workspace_not_found"
    assert missing_connector.status_code == 404
    assert missing_connector.json()["error"] == "connector_not_found"
    assert bad_secret.status_code == 422
    assert bad_secret.json()["error"] == "invalid_secret"


async def test_secret_that_is_not_utf8_encodable_is_rejected(
    api_db: Session, workspace_id: uuid.UUID, actor_headers: dict[str, str]
) -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post(
            f"{_base(workspace_id)}/connectors/salesforce/credential",
            content='{"secret": "sk-\\ud800-live"}',
            headers={**actor_headers, "Content-Type": "application/json"},
        )
        overview = await client.get(_base(workspace_id))

    assert response.status_code == 422
    assert response.json()["error"] == "invalid_secret"
    salesforce = next(item for item in overview.json()["connectors"] if item["key"] == "salesforce")
    assert salesforce["credential_fingerprint"] is None
    assert overview.json()["audit_log"] == []


async def test_malformed_secret_is_not_echoed_in_validation_errors(
    api_db: Session, workspace_id: uuid.UUID, actor_headers: dict[str, str]
) -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post(
            f"{_base(workspace_id)}/connectors/salesforce/credential",
            json={"secret": ["sk-live-list-value"]},
            headers=actor_headers,
        )

    assert response.status_code == 422
    assert "sk-live-list-value" not in response.text
    [error] = response.json()["detail"]
    assert error["loc"] == ["body", "secret"]
    assert "input" not in error


async def test_patch_connector_settings(
    api_db: Session, workspace_id: uuid.UUID, actor_headers: dict[str, str]
) -> None:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        updated = await client.patch(
            f"{_base(workspace_id)}/connectors/hubspot",
            json={"sync_frequency": "weekly", "environment": "sandbox", "scopes": ["crm.objects.contacts.read"]},
            headers=actor_headers,
        )
        invalid = await client.patch(
            f"{_base(workspace_id)}/connectors/hubspot",
            json={"owner": "   "},
            headers=actor_headers,
        )
        anonymous = await client.patch(
            f"{_base(workspace_id)}/connectors/hubspot",
            json={"environment": "staging"},
        )

    assert updated.status_code == 200
    body = updated.json()
    assert body["connector"]["sync_frequency"] == "weekly"
    assert body["connector"]["environment"] == "sandbox"
    assert body["connector"]["scopes"] == ["crm.objects.contacts.read"]
    assert body["summary"]["environments"]["sandbox"] == 1
    assert body["audit_entry"]["action"] == "toggle_connection"
    assert body["audit_entry"]["details"]["changed"] == "sync_frequency,environment,scopes"
    assert invalid.status_code == 422
    assert invalid.json()["error"] == "invalid_command"
    assert anonymous.status_code == 401
