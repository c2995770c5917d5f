"""Encryption of stored connection secrets.

Access and secret keys are persisted only as Fernet tokens. The key comes from
``CREDENTIALS_KEY`` when set, otherwise from ``<DATA_DIR>/encryption.key``,
which is generated on first use with owner-only permissions.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

from s3explorer.common.config import Settings, get_settings

KEY_FILENAME = "encryption.key"

logger = logging.getLogger(__name__)


class CredentialDecryptionError(RuntimeError):
    """Raised when a stored secret cannot be decrypted with the current key."""


class CredentialCipher:
    """Symmetric cipher for connection secrets."""

    def __init__(self, key: bytes) -> None:
        self._fernet = Fernet(key)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except (InvalidToken, ValueError) as exc:
            raise CredentialDecryptionError(
                "Stored credentials cannot be decrypted; was the encryption key rotated?"
            ) from exc


def load_or_create_key(data_dir: Path) -> bytes:
    """Read the key file under data_dir, creating it when missing."""
    key_path = data_dir / KEY_FILENAME
    if key_path.exists():
        return key_path.read_bytes().strip()

    data_dir.mkdir(parents=True, exist_ok=True)
    key = Fernet.generate_key()
    fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "wb") as fp:
        fp.write(key)
    logger.info(
        "credentials_key_created path=%s",
        key_path,
        extra={"extra": {"event": "credentials_key_created", "path": str(key_path)}},
    )
    return key


def build_cipher(settings: Settings) -> CredentialCipher:
    if settings.CREDENTIALS_KEY:
        return CredentialCipher(settings.CREDENTIALS_KEY.encode("ascii"))
    return CredentialCipher(load_or_create_key(Path(settings.DATA_DIR)))


@lru_cache(maxsize=1)
def get_cipher() -> CredentialCipher:
    return build_cipher(get_settings())
