"""Key-value storage interface consumed by the archive manager."""
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class StorageInterface(Protocol):
    """Async string key-value store."""

    async def get_value(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or None if absent."""
        ...

    async def set_value(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...


class MemoryStorage:
    """In-process storage backed by a dict. Nothing survives the process."""

    def __init__(self, values: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(values or {})

    @property
    def values(self) -> dict[str, str]:
        return self._values

    async def get_value(self, key: str) -> Optional[str]:
        return self._values.get(key)

    async def set_value(self, key: str, value: str) -> None:
        self._values[key] = value
