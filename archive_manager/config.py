"""
Archive Manager Configuration: storage key layout and queue settings.

Reads optional overrides from environment variables:
    ARCHIVE_STORAGE_KEY_PREFIX = <prefix for packet keys>
    ARCHIVE_COLLECTION_KEY = <reserved key holding the collection index>
    ARCHIVE_QUEUE_LIMIT = <max queued storage tasks, 0 for unbounded>

Crypto settings (ARCHIVE_CIPHER_BACKEND, ARCHIVE_KDF_ITERATIONS) are read by
:mod:`archive_manager.crypto` at import time.
"""
import os
import logging

from pydantic import BaseModel, Field, field_validator, model_validator

from .encoding import STORAGE_KEY_PREFIX, STORAGE_KEY_COLLECTION

logger = logging.getLogger("archive_manager")

# Storage access is strictly serialized: one task at a time.
STORAGE_QUEUE_CONCURRENCY = 1


class ArchiveManagerConfig(BaseModel):
    """Validated archive manager configuration."""

    storage_key_prefix: str = Field(default=STORAGE_KEY_PREFIX, min_length=1)
    collection_key: str = Field(default=STORAGE_KEY_COLLECTION, min_length=1)
    queue_limit: int = Field(default=0, ge=0)

    @field_validator("storage_key_prefix", "collection_key")
    @classmethod
    def validate_no_separator(cls, v: str) -> str:
        """Keys are comma-joined in the collection index."""
        if "," in v:
            raise ValueError(f"Storage key cannot contain ',': {v!r}")
        return v

    @model_validator(mode="after")
    def validate_collection_key_reserved(self) -> "ArchiveManagerConfig":
        """Ensure no derived packet key can equal the collection key."""
        prefix = self.storage_key_prefix
        key = self.collection_key
        if key.startswith(prefix) and key[len(prefix):].isdigit():
            raise ValueError(
                f"collection_key {key!r} collides with packet keys "
                f"derived from prefix {prefix!r}"
            )
        return self

    @classmethod
    def from_env(cls) -> "ArchiveManagerConfig":
        """Create ArchiveManagerConfig from environment variables.

        Returns:
            Populated ArchiveManagerConfig instance.
        """
        config = cls(
            storage_key_prefix=os.environ.get(
                "ARCHIVE_STORAGE_KEY_PREFIX", STORAGE_KEY_PREFIX
            ),
            collection_key=os.environ.get(
                "ARCHIVE_COLLECTION_KEY", STORAGE_KEY_COLLECTION
            ),
            queue_limit=int(os.environ.get("ARCHIVE_QUEUE_LIMIT", "0")),
        )
        logger.debug(
            "Loaded archive manager config: prefix=%s collection=%s",
            config.storage_key_prefix, config.collection_key,
        )
        return config
