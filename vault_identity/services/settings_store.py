"""
User settings, stored on the profile.

Every mutation is copy-on-write: the current mapping is cloned, the clone is
changed, and the profile's mapping is replaced in one step. A save that is
already serializing the previous mapping never sees a half-applied change.
"""

import copy
import re
from typing import Any

from vault_identity.models.account import UserProfile


def compile_key_pattern(pattern: str) -> re.Pattern[str]:
    """
    Compile a settings key pattern.

    `*` matches any substring; every other character is literal. The pattern
    must match the whole key.
    """
    parts = (re.escape(part) for part in pattern.split("*"))
    return re.compile("^" + ".*?".join(parts) + "$", re.DOTALL)


class SettingsStore:
    """get / set / delete over the profile's settings mapping."""

    def __init__(self, profile: UserProfile) -> None:
        self._profile = profile

    def get(self, key: str, default: Any = None) -> Any:
        """Value for `key`, or `default` when absent."""
        return self._profile.settings.get(key, default)

    def all(self) -> dict[str, Any]:
        return copy.deepcopy(self._profile.settings)

    def set(self, key: str, value: Any) -> None:
        """Set `key` and replace the mapping, which schedules an encrypted save."""
        settings = copy.deepcopy(self._profile.settings)
        settings[key] = value
        self._profile.update(settings=settings)

    def delete(self, pattern: str | None) -> list[str]:
        """
        Remove every key matching `pattern`.

        Returns:
            The removed keys. Empty or None pattern is a no-op.
        """
        if not pattern:
            return []

        matcher = compile_key_pattern(pattern)
        settings = copy.deepcopy(self._profile.settings)
        removed = [key for key in settings if matcher.match(key)]
        for key in removed:
            del settings[key]

        if removed:
            self._profile.update(settings=settings)
        return removed

    def __contains__(self, key: str) -> bool:
        return key in self._profile.settings

    def __len__(self) -> int:
        return len(self._profile.settings)
