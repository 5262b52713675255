"""
Session and authentication domain models.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class SessionState(StrEnum):
    """Lifecycle state of the process session."""

    LOGGED_OUT = "logged_out"
    AUTHENTICATING = "authenticating"
    LOGGED_IN = "logged_in"


@dataclass(frozen=True, kw_only=True)
class SessionRecord:
    """
    Persisted session, enough to restore a login without the password.

    Attributes:
        user_id: Server-assigned account id.
        username: Account username.
        encoded_key: Master key in reversible text form.
        auth_token: Hex auth token.
        storage_descriptor: Opaque storage information of the profile.
    """

    user_id: str
    username: str
    encoded_key: str
    auth_token: str
    storage_descriptor: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.user_id,
            "username": self.username,
            "k": self.encoded_key,
            "a": self.auth_token,
            "storage": self.storage_descriptor,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionRecord":
        """
        Raises:
            KeyError: If a required field is missing.
        """
        return cls(
            user_id=data["id"],
            username=data["username"],
            encoded_key=data["k"],
            auth_token=data["a"],
            storage_descriptor=data.get("storage"),
        )


@dataclass(frozen=True, kw_only=True)
class AuthBundle:
    """
    Externally authenticated session material (federated/alternate login).

    Attributes:
        user_id: Server-assigned account id.
        username: Account username.
        auth_token: Hex auth token.
        encoded_key: Master key in reversible text form.
    """

    user_id: str
    username: str
    auth_token: str
    encoded_key: str


@dataclass(frozen=True, kw_only=True)
class CredentialCheck:
    """
    Result of a server-side credential check.

    Attributes:
        user_id: Account id the credentials belong to.
        migrate: Whether the account still uses a legacy derivation version.
    """

    user_id: str
    migrate: bool = False
