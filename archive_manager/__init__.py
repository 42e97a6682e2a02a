"""Archive Manager: lock/unlock registry for password-protected credential sources.

Security Note (Threat Model):
    Unlocked sources hold decrypted credentials in process memory. A memory
    dump of the application process exposes them. Only locked sources are
    protected, by their archive password.
"""

from .version import __version__
from .manager import ArchiveManager
from .config import ArchiveManagerConfig
from .credentials import Credentials, EncryptedCredentials, SecureCredentials
from .encoding import (
    STORAGE_KEY_PREFIX,
    STORAGE_KEY_COLLECTION,
    string_hash,
    encode_storage_name,
    storage_key,
)
from .exceptions import (
    ArchiveManagerError,
    DuplicateSourceError,
    NotFoundError,
    InvalidStateError,
    StorageError,
    ParseError,
    CredentialError,
)
from .marshalling import CredentialMarshaller, credentials_to_sources
from .models import ArchiveStatus, SourceRecord, SourceDescriptor, ArchivePacket
from .persistence import PersistenceQueue
from .storage import StorageInterface, MemoryStorage

__all__ = [
    "__version__",
    "ArchiveManager",
    "ArchiveManagerConfig",
    "Credentials",
    "EncryptedCredentials",
    "SecureCredentials",
    "STORAGE_KEY_PREFIX",
    "STORAGE_KEY_COLLECTION",
    "string_hash",
    "encode_storage_name",
    "storage_key",
    "ArchiveManagerError",
    "DuplicateSourceError",
    "NotFoundError",
    "InvalidStateError",
    "StorageError",
    "ParseError",
    "CredentialError",
    "CredentialMarshaller",
    "credentials_to_sources",
    "ArchiveStatus",
    "SourceRecord",
    "SourceDescriptor",
    "ArchivePacket",
    "PersistenceQueue",
    "StorageInterface",
    "MemoryStorage",
]
