from __future__ import annotations

from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from ..errors import InvalidSecretError
from ..settings import settings

FINGERPRINT_PREFIX = "sha256:"
FINGERPRINT_DISPLAY_CHARS = 8


@dataclass(frozen=True)
class CredentialFingerprint:
    digest: str
    display: str

    def __repr__(self) -> str:
        return f"CredentialFingerprint(display={self.display!r})"


def _normalize(secret: object, max_length: int) -> bytes:
    if not isinstance(secret, str):
        raise InvalidSecretError("credential secret must be a string")
    trimmed = secret.strip()
    if not trimmed:
        raise InvalidSecretError("a non-empty credential secret is required")
    if len(trimmed) > max_length:
        raise InvalidSecretError(
            f"credential secret exceeds {max_length} characters; paste only the provider key"
        )
    try:
        return trimmed.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidSecretError("credential secret must be valid UTF-8 text") from exc


def _mac(key: str) -> hmac.HMAC:
    return hmac.HMAC(key.encode("utf-8"), hashes.SHA256())


def hash_secret(
    secret: str,
    key: str | None = None,
    max_length: int | None = None,
) -> CredentialFingerprint:
    material = _normalize(secret, max_length or settings.credential_secret_max_length)
    mac = _mac(key or settings.credential_hash_key)
    mac.update(material)
    digest = mac.finalize().hex()
    return CredentialFingerprint(digest=digest, display=f"{FINGERPRINT_PREFIX}{digest[:FINGERPRINT_DISPLAY_CHARS]}")


def verify_secret(secret: str, digest: str, key: str | None = None) -> bool:
    try:
        material = _normalize(secret, settings.credential_secret_max_length)
        expected = bytes.fromhex(digest)
    except (InvalidSecretError, ValueError):
        return False
    mac = _mac(key or settings.credential_hash_key)
    mac.update(material)
    try:
        mac.verify(expected)
    except InvalidSignature:
        return False
    return True
