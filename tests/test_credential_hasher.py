from __future__ import annotations

import pytest

from control_tower.errors import InvalidSecretError
from control_tower.services.credential_hasher import hash_secret, verify_secret


def test_fingerprint_display_is_prefixed_short_digest() -> None:
    fingerprint = hash_secret("sk-live-abc123", key="unit-test-key")
    assert fingerprint.display.startswith("sha256:")
    assert len(fingerprint.display) == len("sha256:") + 8
    assert fingerprint.display.removeprefix("sha256:") == fingerprint.digest[:8]
    assert len(fingerprint.digest) == 64


def test_hash_is_deterministic_for_same_key_and_trims_whitespace() -> None:
    first = hash_secret("sk-live-abc123", key="unit-test-key")
    second = hash_secret("  sk-live-abc123\n", key="unit-test-key")
    assert first == second


def test_hash_depends_on_key() -> None:
    assert hash_secret("sk-live-abc123", key="key-a").digest != hash_secret("sk-live-abc123", key="key-b").digest


def test_fingerprint_never_contains_secret() -> None:
    secret = "sk-live-abc123"
    fingerprint = hash_secret(secret, key="unit-test-key")
    assert secret not in fingerprint.display
    assert secret not in fingerprint.digest
    assert secret not in repr(fingerprint)
    assert fingerprint.digest not in repr(fingerprint)


@pytest.mark.parametrize("secret", ["", "   ", "\n\t"])
def test_blank_secret_rejected(secret: str) -> None:
    with pytest.raises(InvalidSecretError):
        hash_secret(secret, key="unit-test-key")


def test_non_string_secret_rejected() -> None:
    with pytest.raises(InvalidSecretError):
        hash_secret(12345, key="unit-test-key")  # type: ignore[arg-type]


def test_oversized_secret_rejected() -> None:
    with pytest.raises(InvalidSecretError):
        hash_secret("x" * 65, key="unit-test-key", max_length=64)


def test_verify_secret_matches_only_original() -> None:
    fingerprint = hash_secret("sk-live-abc123", key="unit-test-key")
    assert verify_secret("sk-live-abc123", fingerprint.digest, key="unit-test-key") is True
    assert verify_secret("sk-live-other", fingerprint.digest, key="unit-test-key") is False
    assert verify_secret("sk-live-abc123", fingerprint.digest, key="another-key") is False
    assert verify_secret("", fingerprint.digest, key="unit-test-key") is False
    assert verify_secret("sk-live-abc123", "not-hex", key="unit-test-key") is False


def test_secret_with_lone_surrogate_rejected() -> None:
    with pytest.raises(InvalidSecretError) as excinfo:
        hash_secret("sk-\ud800-live", key="unit-test-key")
    assert "UTF-8" in excinfo.value.message
    assert verify_secret("sk-\ud800-live", "00" * 32, key="unit-test-key") is False
