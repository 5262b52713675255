"""
vault_identity client configuration.
"""

from dataclasses import dataclass, field
from pathlib import Path


def _default_session_dir() -> Path:
    return Path.home() / ".vault_identity"


@dataclass(frozen=True, kw_only=True)
class VaultIdentityConfig:
    """
    Attributes:
        api_url: Base URL for the account API.
        timeout: Request timeout in seconds.
        user_agent: User-Agent header value.
        max_retries: Maximum number of retries for network errors and 5xx responses.
        retry_delay: Base delay between retries in seconds.
        remember_session: Whether successful logins are persisted for later restore.
        session_dir: Directory holding the persisted session slot.
        session_slot_name: File name of the persisted session slot.
        session_passphrase: Passphrase protecting the session slot. A machine-local
            key file is used when unset.
        kdf_iterations: PBKDF2 iterations for key derivation version 0.
        poll_interval: First delay of the local store readiness poll, in seconds.
        poll_backoff: Multiplier applied to the poll delay after each attempt.
        poll_max_interval: Upper bound of the poll delay, in seconds.
        poll_timeout: Deadline for the local store to become ready, in seconds.
    """

    api_url: str = "https://api.vault-identity.local"
    timeout: float = 30.0
    user_agent: str = "VaultIdentity-Python/0.1"
    max_retries: int = 3
    retry_delay: float = 1.0
    remember_session: bool = True
    session_dir: Path = field(default_factory=_default_session_dir)
    session_slot_name: str = "user_session"
    session_passphrase: str | None = None
    kdf_iterations: int = 100_000
    poll_interval: float = 0.01
    poll_backoff: float = 2.0
    poll_max_interval: float = 1.0
    poll_timeout: float = 30.0

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            msg = "timeout must be positive"
            raise ValueError(msg)
        if self.max_retries < 0:
            msg = "max_retries must be non-negative"
            raise ValueError(msg)
        if self.retry_delay < 0:
            msg = "retry_delay must be non-negative"
            raise ValueError(msg)
        if not self.session_slot_name:
            msg = "session_slot_name must not be empty"
            raise ValueError(msg)
        if self.kdf_iterations <= 0:
            msg = "kdf_iterations must be positive"
            raise ValueError(msg)
        if self.poll_interval <= 0:
            msg = "poll_interval must be positive"
            raise ValueError(msg)
        if self.poll_backoff < 1:
            msg = "poll_backoff must be at least 1"
            raise ValueError(msg)
        if self.poll_max_interval < self.poll_interval:
            msg = "poll_max_interval must not be smaller than poll_interval"
            raise ValueError(msg)
        if self.poll_timeout <= 0:
            msg = "poll_timeout must be positive"
            raise ValueError(msg)
