"""
Account profile model.

The profile splits into public fields, sent to the server as-is, and private
fields, sealed together under the master key into a single `body` blob.
"""

import copy
from dataclasses import dataclass
from typing import Any

from vault_identity.core.events import EventEmitter
from vault_identity.crypto.envelope import seal_json, unseal_json

PUBLIC_FIELDS = ("id", "username", "public_key", "storage_descriptor")
PRIVATE_FIELDS = ("private_key", "settings")

# Attribute name -> wire name
_WIRE_NAMES = {
    "id": "id",
    "username": "username",
    "public_key": "pubkey",
    "storage_descriptor": "storage",
    "private_key": "privkey",
    "settings": "settings",
}


@dataclass(frozen=True, kw_only=True)
class KeychainEntry:
    """
    An item key sealed under the master key.

    Attributes:
        item_id: Id of the object the key belongs to.
        sealed_key: Envelope produced by `seal()` with the master key.
    """

    item_id: str
    sealed_key: str


class UserProfile:
    """
    The logged-in user's profile.

    Emits `change:<field>` for every field whose value changed and a single
    `change` after each update. `id` is assigned by the server and is None
    until then.

    `is_loaded` tells whether the private fields are authoritative: they came
    from the server (`merge` with a key) or were created locally
    (`mark_loaded`). A profile restored from the session record only carries
    public fields and must not be sealed over the stored one.
    """

    def __init__(self) -> None:
        self.events = EventEmitter()
        self.id: str | None = None
        self.username: str | None = None
        self.public_key: str | None = None
        self.private_key: str | None = None
        self.storage_descriptor: Any = None
        self._settings: dict[str, Any] = {}
        self._loaded = False

    @property
    def settings(self) -> dict[str, Any]:
        """Current settings mapping. Treat as read-only; replace via update()."""
        return self._settings

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def mark_loaded(self) -> None:
        self._loaded = True

    def update(self, **fields: Any) -> list[str]:
        """
        Set fields and notify listeners.

        Returns:
            Names of the fields that changed.

        Raises:
            AttributeError: On an unknown field.
        """
        changed = []
        for name, value in fields.items():
            if name not in _WIRE_NAMES:
                msg = f"Unknown profile field: {name}"
                raise AttributeError(msg)
            if name == "settings":
                value = dict(value or {})
                current = self._settings
            else:
                current = getattr(self, name)
            if current == value:
                continue
            if name == "settings":
                self._settings = value
            else:
                setattr(self, name, value)
            changed.append(name)

        for name in changed:
            self.events.emit(f"change:{name}", self)
        if changed:
            self.events.emit("change", self, changed)
        return changed

    def clear(self) -> None:
        """Reset every field without emitting change events."""
        self.id = None
        self.username = None
        self.public_key = None
        self.private_key = None
        self.storage_descriptor = None
        self._settings = {}
        self._loaded = False

    def public_data(self) -> dict[str, Any]:
        return {_WIRE_NAMES[name]: getattr(self, name) for name in PUBLIC_FIELDS}

    def private_data(self) -> dict[str, Any]:
        return {
            _WIRE_NAMES["private_key"]: self.private_key,
            _WIRE_NAMES["settings"]: copy.deepcopy(self._settings),
        }

    def serialize(self, key: bytes) -> dict[str, Any]:
        """Wire form: public fields plus the private fields sealed under `key`."""
        payload = self.public_data()
        if payload["id"] is None:
            del payload["id"]
        payload["body"] = seal_json(key, self.private_data())
        return payload

    def merge(self, data: dict[str, Any], key: bytes | None = None) -> list[str]:
        """
        Merge a wire payload into the profile.

        The sealed `body` is only opened when `key` is given, and only then
        is the profile marked loaded.

        Raises:
            CryptoError: If `body` cannot be opened with `key`.
        """
        fields: dict[str, Any] = {}
        for name in PUBLIC_FIELDS:
            wire = _WIRE_NAMES[name]
            if wire in data:
                fields[name] = data[wire]

        if key is not None and data.get("body"):
            private = unseal_json(key, data["body"])
            if _WIRE_NAMES["private_key"] in private:
                fields["private_key"] = private[_WIRE_NAMES["private_key"]]
            if _WIRE_NAMES["settings"] in private:
                fields["settings"] = private[_WIRE_NAMES["settings"]]

        if key is not None:
            # Before update(), so a settings change seen by listeners can be saved
            self._loaded = True
        return self.update(**fields)

    def __repr__(self) -> str:
        return f"UserProfile(id={self.id!r}, username={self.username!r})"
