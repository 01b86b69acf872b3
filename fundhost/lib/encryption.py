"""Symmetric encryption of secrets stored at rest.

Values are encrypted with Fernet using the key from ``FUNDHOST_ENCRYPTION_KEY``.
Models keep ciphertext in their columns; services call these functions explicitly
when writing and reading.
"""

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

from fundhost.config import get_settings
from fundhost.errors import ConfigError, InvariantError

logger = logging.getLogger(__name__)


def _get_cipher() -> Fernet:
    key = get_settings().encryption_key
    if not key:
        raise ConfigError("FUNDHOST_ENCRYPTION_KEY is not set")
    try:
        return Fernet(key.encode("utf-8"))
    except (TypeError, ValueError) as e:
        raise ConfigError("FUNDHOST_ENCRYPTION_KEY is not a valid Fernet key") from e


def encrypt(plain: str) -> str:
    """Encrypt a string and return the ciphertext as text."""
    return _get_cipher().encrypt(plain.encode("utf-8")).decode("utf-8")


def decrypt(stored: str) -> str:
    """Decrypt a value produced by ``encrypt``.

    Raises:
        InvariantError: if the value was not encrypted with the current key
    """
    try:
        return _get_cipher().decrypt(stored.encode("utf-8")).decode("utf-8")
    except InvalidToken as e:
        raise InvariantError("Unable to decrypt stored value") from e


def encrypt_json(value: Any) -> str:
    """Serialize a JSON-compatible value and encrypt it."""
    return encrypt(json.dumps(value))


def decrypt_json(stored: str | None) -> Any | None:
    """Decrypt and deserialize a value produced by ``encrypt_json``.

    Returns None when the value is missing or cannot be decoded.
    """
    if not stored:
        return None
    try:
        return json.loads(decrypt(stored))
    except (InvariantError, ValueError):
        logger.warning("Could not decode encrypted JSON value")
        return None


__all__ = ["encrypt", "decrypt", "encrypt_json", "decrypt_json"]
