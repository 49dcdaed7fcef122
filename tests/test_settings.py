from __future__ import annotations

import pytest
from pydantic import ValidationError

from control_tower.settings import DEV_CREDENTIAL_HASH_KEY, Settings


def test_development_allows_dev_credential_key() -> None:
    configured = Settings(app_env="development", credential_hash_key=DEV_CREDENTIAL_HASH_KEY)
    assert configured.credential_hash_key == DEV_CREDENTIAL_HASH_KEY


def test_production_requires_real_credential_key() -> None:
    with pytest.raises(ValidationError):
        Settings(app_env="production", credential_hash_key=DEV_CREDENTIAL_HASH_KEY)


def test_production_accepts_configured_key() -> None:
    configured = Settings(app_env="production", credential_hash_key="prod-key-from-secret-manager")
    assert configured.app_env == "production"


def test_audit_attempts_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(audit_append_max_attempts=0)
