"""Provider credential encryption and blob parsing.

Stored blobs use one of these encodings:

- ``enc:<base64(nonce || ciphertext || tag)>``: AES-256-GCM, key = SHA-256(app secret),
  random 12-byte nonce.
- ``plain:<base64(json)>``: bootstrap mode when no app secret is configured.
- bare JSON object: legacy rows and env-seeded credentials.
- bare string: legacy raw ASSRT token only.

Decrypted credentials are never cached or logged.
"""

import base64
import binascii
import hashlib
import json
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from error_handler import CredentialError

logger = logging.getLogger(__name__)

ENC_PREFIX = "enc:"
PLAIN_PREFIX = "plain:"
NONCE_SIZE = 12
TAG_SIZE = 16

# Providers whose legacy credential is a single raw token string
RAW_TOKEN_PROVIDERS = frozenset({"assrt"})


def _derive_key(secret: str) -> bytes:
    return hashlib.sha256(secret.encode("utf-8")).digest()


def encrypt(plaintext: bytes, secret: str) -> str:
    """Encode a credential for storage.

    With an empty secret the payload is only base64-wrapped (``plain:``).
    """
    if not (secret or "").strip():
        return PLAIN_PREFIX + base64.b64encode(plaintext).decode("ascii")
    nonce = os.urandom(NONCE_SIZE)
    sealed = AESGCM(_derive_key(secret)).encrypt(nonce, plaintext, None)
    return ENC_PREFIX + base64.b64encode(nonce + sealed).decode("ascii")


def decrypt(payload: str, secret: str) -> bytes:
    """Decrypt the base64 part of an ``enc:`` blob.

    Raises:
        CredentialError: Missing secret, bad base64, short payload, or
            authentication failure (wrong secret or tampered data).
    """
    if not (secret or "").strip():
        raise CredentialError("encrypted credential found but FOURSUBS_APP_SECRET is empty")
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise CredentialError(f"invalid credential encoding: {exc}") from exc
    if len(raw) < NONCE_SIZE + TAG_SIZE:
        raise CredentialError("invalid encrypted payload")
    nonce, sealed = raw[:NONCE_SIZE], raw[NONCE_SIZE:]
    try:
        return AESGCM(_derive_key(secret)).decrypt(nonce, sealed, None)
    except InvalidTag as exc:
        raise CredentialError("credential decryption failed") from exc


def _decode_json_map(raw) -> dict:
    """Parse a non-empty JSON object of strings. Returns None for anything else."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict) or not data:
        return None
    if not all(isinstance(v, str) for v in data.values()):
        return None
    return data


def parse_credential(blob: str, secret: str, provider_name: str) -> dict:
    """Turn a stored blob into a credential map.

    Returns:
        ``{}`` when the provider is not configured (blank blob), otherwise
        a non-empty map of credential fields.

    Raises:
        CredentialError: The blob cannot be decoded for this provider.
    """
    trimmed = (blob or "").strip()
    if not trimmed:
        return {}

    if trimmed.startswith(PLAIN_PREFIX):
        try:
            raw = base64.b64decode(trimmed[len(PLAIN_PREFIX):], validate=True)
        except (binascii.Error, ValueError) as exc:
            raise CredentialError(f"invalid credential encoding: {exc}") from exc
        cred = _decode_json_map(raw)
        if cred is not None:
            return cred
        if provider_name in RAW_TOKEN_PROVIDERS:
            return {"token": raw.decode("utf-8", errors="replace")}
        raise CredentialError(f"invalid {provider_name} credential payload")

    if trimmed.startswith(ENC_PREFIX):
        raw = decrypt(trimmed[len(ENC_PREFIX):], secret)
        cred = _decode_json_map(raw)
        if cred is None:
            raise CredentialError(f"invalid {provider_name} credential payload")
        return cred

    if trimmed.startswith("{"):
        cred = _decode_json_map(trimmed)
        if cred is not None:
            return cred

    if provider_name in RAW_TOKEN_PROVIDERS:
        return {"token": trimmed}
    raise CredentialError("unsupported credential format", context={"provider": provider_name})


def seal_credential(fields: dict, secret: str) -> str:
    """Serialize a credential map to JSON and encrypt it for storage."""
    raw = json.dumps(fields, sort_keys=True, ensure_ascii=False).encode("utf-8")
    return encrypt(raw, secret)
