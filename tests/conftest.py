"""Shared fixtures for archive manager tests."""
import os
import asyncio

# Keep key derivation fast; read once when archive_manager.crypto is imported.
os.environ.setdefault("ARCHIVE_KDF_ITERATIONS", "1000")

import pytest
import pytest_asyncio

from archive_manager import ArchiveManager, Credentials, MemoryStorage


class RecordingStorage(MemoryStorage):
    """MemoryStorage that records every call and how many overlap."""

    def __init__(self, values=None, delay: float = 0.0):
        super().__init__(values)
        self.calls: list[tuple[str, str]] = []
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.fail_on_set: set[str] = set()
        self.fail_on_get: set[str] = set()

    async def _enter(self, op: str, key: str) -> None:
        self.calls.append((op, key))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

    async def get_value(self, key: str):
        await self._enter("get", key)
        if key in self.fail_on_get:
            raise ConnectionError(f"backend unavailable for {key}")
        return await super().get_value(key)

    async def set_value(self, key: str, value: str) -> None:
        await self._enter("set", key)
        if key in self.fail_on_set or "*" in self.fail_on_set:
            raise ConnectionError(f"backend unavailable for {key}")
        await super().set_value(key, value)

    def set_keys(self) -> list[str]:
        return [key for op, key in self.calls if op == "set"]


PASSWORD = "correct horse battery staple"


def make_source_credentials() -> Credentials:
    return Credentials(
        type="dropbox",
        data={"token": "dbx-token", "path": "/vaults/main.bcup"},
    )


def make_archive_credentials(password: str = PASSWORD) -> Credentials:
    return Credentials(type="password", password=password)


@pytest.fixture
def storage():
    """Fresh recording storage."""
    return RecordingStorage()


@pytest.fixture
def source_credentials():
    return make_source_credentials()


@pytest.fixture
def archive_credentials():
    return make_archive_credentials()


@pytest_asyncio.fixture
async def manager(storage):
    """ArchiveManager over the recording storage, closed after the test."""
    mgr = ArchiveManager(storage)
    yield mgr
    await mgr.close()
