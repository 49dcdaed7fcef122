"""Error taxonomy for control tower commands.

Every error carries a human-readable message that is safe to show an operator and an
HTTP status used by the API layer. None of them ever include secret material.
"""

from __future__ import annotations


class ControlTowerError(Exception):
    code = "control_tower_error"
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidSecretError(ControlTowerError):
    code = "invalid_secret"
    status_code = 422


class MissingCredentialError(ControlTowerError):
    code = "missing_credential"
    status_code = 409

    def __init__(self, connector_key: str) -> None:
        super().__init__(
            f"no credential on file for {connector_key}; rotate a key before enabling this connector"
        )
        self.connector_key = connector_key


class ConnectorNotFoundError(ControlTowerError):
    code = "connector_not_found"
    status_code = 404

    def __init__(self, connector_key: str) -> None:
        super().__init__(f"connector {connector_key} not found in this workspace")
        self.connector_key = connector_key


class ConnectorNotReadyError(ControlTowerError):
    code = "connector_not_ready"
    status_code = 409

    def __init__(self, connector_key: str, status: str) -> None:
        super().__init__(f"connector {connector_key} is {status}; connect it before syncing")
        self.connector_key = connector_key
        self.status = status


class ConnectorBusyError(ControlTowerError):
    code = "connector_busy"
    status_code = 409

    def __init__(self, connector_key: str) -> None:
        super().__init__(f"another command is in progress for {connector_key}; retry shortly")
        self.connector_key = connector_key


class IncidentNotFoundError(ControlTowerError):
    code = "incident_not_found"
    status_code = 404

    def __init__(self, connector_key: str, incident_id: object) -> None:
        super().__init__(f"no open incident {incident_id} on connector {connector_key}")
        self.connector_key = connector_key
        self.incident_id = incident_id


class WorkspaceNotFoundError(ControlTowerError):
    code = "workspace_not_found"
    status_code = 404

    def __init__(self, workspace_id: object) -> None:
        super().__init__(f"workspace {workspace_id} not found")
        self.workspace_id = workspace_id


class CommandValidationError(ControlTowerError):
    code = "invalid_command"
    status_code = 422


class PersistenceError(ControlTowerError):
    code = "persistence_error"
    status_code = 503

    def __init__(self, message: str = "control tower store unavailable; re-check connector state and retry") -> None:
        super().__init__(message)


class UnauthorizedActorError(ControlTowerError):
    code = "unauthorized_actor"
    status_code = 401
