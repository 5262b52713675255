"""
Local store interface.

The embedded database and its sync engine live outside this package; the
session layer only needs to know whether the store is ready and to write one
record into it.
"""

import copy
from typing import Any, Protocol, runtime_checkable

import structlog

logger = structlog.get_logger(__name__)

USER_TABLE = "user"
USER_RECORD_KEY = "user"


@runtime_checkable
class LocalStore(Protocol):
    """Abstract interface for the local database."""

    @property
    def is_initialized(self) -> bool:
        """Whether the store is open and accepts writes."""
        ...

    async def save(self, table: str, key: str, record: dict[str, Any]) -> None:
        """
        Insert or replace `record` under `table`/`key`.

        Raises:
            Exception: Implementation-specific storage errors.
        """
        ...

    async def wipe(self) -> None:
        """Delete every table and record."""
        ...


class InMemoryLocalStore:
    """
    Dict-backed LocalStore.

    Starts uninitialized unless `initialized=True`; call `initialize()` once
    the owning application has opened it.
    """

    def __init__(self, *, initialized: bool = False) -> None:
        self._initialized = initialized
        self._tables: dict[str, dict[str, dict[str, Any]]] = {}

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        self._initialized = True
        logger.debug("Local store initialized")

    async def save(self, table: str, key: str, record: dict[str, Any]) -> None:
        if not self._initialized:
            msg = "Local store is not initialized"
            raise RuntimeError(msg)
        self._tables.setdefault(table, {})[key] = copy.deepcopy(record)

    async def wipe(self) -> None:
        self._tables.clear()

    def get(self, table: str, key: str) -> dict[str, Any] | None:
        record = self._tables.get(table, {}).get(key)
        return copy.deepcopy(record) if record is not None else None
