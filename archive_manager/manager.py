"""
ArchiveManager: Registry of credential sources and their lock state.

Provides the public API for the archive manager:
- ``add_source(name, source_credentials, archive_credentials)``: register an
  unlocked source and persist every unlocked source
- ``lock(name)``: persist, then replace live credentials with ciphertext
- ``unlock(name, master_password)``: decrypt a locked source back to live
  credentials
- ``dehydrate()``: write every unlocked source to storage
- ``rehydrate()``: rebuild the registry, all locked, from storage

Storage layout:
    <prefix><hash(type + name)> = {"name", "sourceCredentials",
                                   "archiveCredentials", "type"}
    <collection key>            = comma-joined packet keys

Security Note:
    Never log passwords, plaintext or ciphertext values. Only log source
    names, types, storage keys and state transitions.
"""
import asyncio
import logging
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional

from .config import ArchiveManagerConfig, STORAGE_QUEUE_CONCURRENCY
from .credentials import EncryptedCredentials
from .encoding import storage_key
from .exceptions import (
    ArchiveManagerError,
    CredentialError,
    DuplicateSourceError,
    InvalidStateError,
    NotFoundError,
    StorageError,
)
from .marshalling import CredentialMarshaller, credentials_to_sources
from .models import ArchivePacket, ArchiveStatus, SourceRecord
from .persistence import PersistenceQueue
from .storage import StorageInterface

logger = logging.getLogger("archive_manager")


class ArchiveManager:
    """Registry of named credential sources kept in sync with storage.

    All storage access goes through a single-worker
    :class:`~archive_manager.persistence.PersistenceQueue`. Status changes
    happen synchronously before the first ``await`` of an operation, so a
    second operation on the same source observes ``PROCESSING``.
    """

    def __init__(
        self,
        storage: StorageInterface,
        marshaller: Optional[CredentialMarshaller] = None,
        config: Optional[ArchiveManagerConfig] = None,
        key_hasher: Optional[Callable[[str], str]] = None,
    ):
        self._storage = storage
        self._marshaller = marshaller or credentials_to_sources
        self._config = config or ArchiveManagerConfig()
        self._key_hasher = key_hasher
        self._sources: dict[str, SourceRecord] = {}
        self._unlocking: set[str] = set()
        self._storage_queue = PersistenceQueue(
            concurrency=STORAGE_QUEUE_CONCURRENCY,
            maxsize=self._config.queue_limit,
        )

    async def __aenter__(self) -> "ArchiveManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def sources(self) -> Mapping[str, SourceRecord]:
        return MappingProxyType(self._sources)

    @property
    def unlocked_sources(self) -> list[SourceRecord]:
        return [
            source for source in self._sources.values()
            if source.status is ArchiveStatus.UNLOCKED
        ]

    @property
    def storage_interface(self) -> StorageInterface:
        return self._storage

    @property
    def storage_queue(self) -> PersistenceQueue:
        return self._storage_queue

    @property
    def config(self) -> ArchiveManagerConfig:
        return self._config

    def storage_key(self, source_type: str, name: str) -> str:
        """Storage key of the packet for a source.

        Raises:
            StorageError: If the key hasher yields a key containing ``,`` or
                the collection key.
        """
        try:
            return storage_key(
                source_type,
                name,
                prefix=self._config.storage_key_prefix,
                hasher=self._key_hasher,
                collection_key=self._config.collection_key,
            )
        except ValueError as err:
            raise StorageError(f"Invalid storage key for source {name}: {err}") from err

    async def close(self) -> None:
        """Finish pending storage work and stop the queue worker."""
        await self._storage_queue.close()

    # ------------------------------------------------------------------
    # Storage helpers
    # ------------------------------------------------------------------

    async def _get_value(self, key: str) -> Optional[str]:
        try:
            return await self._storage.get_value(key)
        except ArchiveManagerError:
            raise
        except Exception as err:
            raise StorageError(f"Failed to read storage key {key}: {err}") from err

    async def _set_value(self, key: str, value: str) -> None:
        try:
            await self._storage.set_value(key, value)
        except ArchiveManagerError:
            raise
        except Exception as err:
            raise StorageError(f"Failed to write storage key {key}: {err}") from err

    async def _encrypt_credentials(self, source: SourceRecord) -> tuple[str, str]:
        """Encrypt both credential objects with the archive password."""
        password = getattr(source.archive_credentials, "password", None)
        try:
            enc_source, enc_archive = await asyncio.gather(
                source.source_credentials.to_secure_string(password),
                source.archive_credentials.to_secure_string(password),
            )
        except ArchiveManagerError:
            raise
        except Exception as err:
            raise CredentialError(
                f"Failed to encrypt credentials for source {source.name}: {err}"
            ) from err
        return enc_source, enc_archive

    # ------------------------------------------------------------------
    # Dehydration / rehydration
    # ------------------------------------------------------------------

    async def _write_packet(self, source: SourceRecord) -> tuple[str, ArchivePacket]:
        key = self.storage_key(source.type, source.name)
        enc_source, enc_archive = await self._encrypt_credentials(source)
        packet = ArchivePacket(
            name=source.name,
            source_credentials=enc_source,
            archive_credentials=enc_archive,
            type=source.type,
        )
        await self._set_value(key, packet.dumps())
        logger.debug("Wrote source %s to %s", source.name, key)
        return key, packet

    async def _write_sources(
        self, including: Optional[SourceRecord] = None
    ) -> list[tuple[str, ArchivePacket]]:
        sources = self.unlocked_sources
        if including is not None and all(s is not including for s in sources):
            sources.append(including)
        # one storage call in flight at a time, even within a task
        written = [await self._write_packet(source) for source in sources]
        await self._set_value(
            self._config.collection_key, ",".join(key for key, _ in written)
        )
        return written

    async def _dehydrate(
        self, including: Optional[SourceRecord] = None
    ) -> list[tuple[str, ArchivePacket]]:
        return await self._storage_queue.add(
            lambda: self._write_sources(including)
        )

    async def dehydrate(self) -> list[str]:
        """Persist every unlocked source and rewrite the collection index.

        The index lists exactly the keys written by this call; keys of
        sources that are no longer unlocked are dropped from it.

        Returns:
            Storage keys written, in index order.
        """
        written = await self._dehydrate()
        logger.info("Dehydrated %d source(s)", len(written))
        return [key for key, _ in written]

    async def _read_sources(self) -> None:
        index = await self._get_value(self._config.collection_key)
        if index is None:
            raise StorageError(
                f"Collection index not found: {self._config.collection_key}"
            )
        keys = [key for key in index.split(",") if key]
        raw_packets = [await self._get_value(key) for key in keys]
        packets = []
        for key, raw in zip(keys, raw_packets):
            if raw is None:
                raise StorageError(f"Source packet not found: {key}")
            packets.append(ArchivePacket.loads(raw, key))
        for packet in packets:
            self._sources[packet.name] = SourceRecord(
                name=packet.name,
                type=packet.type,
                status=ArchiveStatus.LOCKED,
                source_credentials=packet.source_credentials,
                archive_credentials=packet.archive_credentials,
            )

    async def rehydrate(self) -> None:
        """Replace the registry with the locked sources found in storage.

        Raises:
            StorageError: If the index or a packet is missing or unreadable.
            ParseError: If a packet is malformed.
        """
        self._sources.clear()
        await self._storage_queue.add(self._read_sources)
        logger.info("Rehydrated %d source(s)", len(self._sources))

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    async def add_source(
        self,
        name: str,
        source_credentials: Any,
        archive_credentials: Any,
        initialize: bool = False,
    ) -> None:
        """Register unlocked source(s) and persist every unlocked source.

        Args:
            name: Name for the source. A descriptor returned by the
                marshaller with its own name keeps that name.
            source_credentials: Source credential spec for the marshaller.
            archive_credentials: Archive credential spec for the marshaller.
            initialize: Passed through to the marshaller.

        Raises:
            DuplicateSourceError: If a source with the name exists and is
                not being unlocked.
            CredentialError: If the marshaller fails.
            StorageError: If persisting fails.
        """
        try:
            descriptors = await self._marshaller(
                source_credentials, archive_credentials, initialize
            )
        except ArchiveManagerError:
            raise
        except Exception as err:
            raise CredentialError(
                f"Cannot add source {name}: failed to marshal credentials: {err}"
            ) from err
        for descriptor in descriptors:
            existing = self._sources.get(descriptor.name or name)
            if existing is not None and not existing.unlock:
                raise DuplicateSourceError(descriptor.name or name)
        for descriptor in descriptors:
            source_name = descriptor.name or name
            self._sources[source_name] = SourceRecord(
                name=source_name,
                type=descriptor.type,
                status=ArchiveStatus.UNLOCKED,
                source_credentials=descriptor.source_credentials,
                archive_credentials=descriptor.archive_credentials,
            )
            logger.info("Added source %s (%s)", source_name, descriptor.type)
        await self.dehydrate()

    async def lock(self, name: str) -> None:
        """Persist a source, then replace its live credentials with ciphertext.

        On failure the previous status is restored and the error re-raised.

        Raises:
            NotFoundError: If no source has this name.
            InvalidStateError: If the source is not unlocked.
        """
        source = self._sources.get(name)
        if source is None:
            raise NotFoundError(name, "lock")
        if source.status is not ArchiveStatus.UNLOCKED:
            raise InvalidStateError(name, source.status, "lock")
        original_status = source.status
        source.status = ArchiveStatus.PROCESSING
        logger.info("Locking source %s", name)
        try:
            written = await self._dehydrate(including=source)
        except Exception as err:
            source.status = original_status
            logger.error("Failed to lock source %s: %s", name, err)
            raise
        # the locked record keeps the ciphertext that was just persisted
        packet = next(p for _, p in written if p.name == source.name)
        self._sources[name] = SourceRecord(
            name=source.name,
            type=source.type,
            status=ArchiveStatus.LOCKED,
            source_credentials=packet.source_credentials,
            archive_credentials=packet.archive_credentials,
        )
        logger.info("Locked source %s", name)

    async def unlock(self, name: str, master_password: str) -> None:
        """Decrypt a locked source back into live credentials.

        A failed unlock leaves the source ``PROCESSING`` with its unlock
        marker set; calling ``unlock`` again with the right password
        completes it.

        Raises:
            NotFoundError: If no source has this name.
            InvalidStateError: If the source is neither locked nor left over
                from a failed unlock, or an unlock is already running.
            CredentialError: If the password is wrong.
        """
        source = self._sources.get(name)
        if source is None:
            raise NotFoundError(name, "unlock")
        stalled = (
            source.status is ArchiveStatus.PROCESSING
            and source.unlock
            and name not in self._unlocking
        )
        if source.status is not ArchiveStatus.LOCKED and not stalled:
            raise InvalidStateError(name, source.status, "unlock")
        source.status = ArchiveStatus.PROCESSING
        source.unlock = True
        self._unlocking.add(name)
        logger.info("Unlocking source %s", name)
        try:
            await self.add_source(
                name,
                EncryptedCredentials(source.source_credentials, master_password),
                EncryptedCredentials(source.archive_credentials, master_password),
            )
        except Exception as err:
            logger.error("Failed to unlock source %s: %s", name, err)
            raise
        finally:
            self._unlocking.discard(name)
        logger.info("Unlocked source %s", name)
