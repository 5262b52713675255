"""
Durable slot for the persisted session record.

The record is written as a Fernet token so that the encoded master key and
auth token are encrypted at rest. The Fernet key comes from the configured
passphrase or, if none is set, from a random machine-local key file created
next to the slot.
"""

import base64
import hashlib
import json
import os
import secrets
from pathlib import Path

import structlog
from cryptography.fernet import Fernet, InvalidToken

from vault_identity.models.auth import SessionRecord

logger = structlog.get_logger(__name__)

_MACHINE_KEY_NAME = ".machine_key"


def _fernet_key(passphrase: str) -> bytes:
    return base64.urlsafe_b64encode(hashlib.sha256(passphrase.encode("utf-8")).digest())


def _write_private(path: Path, data: bytes) -> None:
    """Write `data` to `path` readable only by the owner."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(data)


class SessionStore:
    """Save, load and delete the single persisted SessionRecord."""

    def __init__(self, directory: Path | str, slot_name: str, passphrase: str | None = None) -> None:
        """
        Args:
            directory: Directory holding the slot.
            slot_name: File name of the slot.
            passphrase: Secret protecting the slot. Uses a machine-local key if None.
        """
        self._directory = Path(directory)
        self._path = self._directory / slot_name
        self._passphrase = passphrase
        self._fernet: Fernet | None = None

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def save(self, record: SessionRecord) -> None:
        """Encrypt and write `record`, replacing any previous one."""
        payload = json.dumps(record.to_dict()).encode("utf-8")
        self._directory.mkdir(parents=True, exist_ok=True)
        _write_private(self._path, self._get_fernet().encrypt(payload))
        logger.debug("Session record written", slot=self._path.name)

    def load(self) -> SessionRecord | None:
        """
        Read the record.

        Returns:
            The record, or None if the slot is empty, corrupt, or was written
            with another key.
        """
        if not self._path.exists():
            return None
        try:
            raw = self._get_fernet().decrypt(self._path.read_bytes())
            return SessionRecord.from_dict(json.loads(raw))
        except (InvalidToken, json.JSONDecodeError, KeyError, TypeError):
            logger.warning("Session record corrupt or unreadable; ignoring", slot=self._path.name)
            return None

    def clear(self) -> None:
        """Delete the record. No-op if absent."""
        self._path.unlink(missing_ok=True)

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            secret = self._passphrase if self._passphrase is not None else self._machine_key()
            self._fernet = Fernet(_fernet_key(secret))
        return self._fernet

    def _machine_key(self) -> str:
        key_path = self._directory / _MACHINE_KEY_NAME
        if key_path.exists():
            return key_path.read_text().strip()
        self._directory.mkdir(parents=True, exist_ok=True)
        key = secrets.token_hex(32)
        _write_private(key_path, key.encode("ascii"))
        return key
