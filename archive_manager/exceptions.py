"""Archive Manager exceptions."""
from typing import Any


class ArchiveManagerError(Exception):
    """Base error for every archive manager failure."""


class DuplicateSourceError(ArchiveManagerError):
    """A source with this name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"Cannot add source: Archive source with this name already exists: {name}"
        )


class NotFoundError(ArchiveManagerError):
    """No source is registered under this name."""

    def __init__(self, name: str, action: str = "operate on"):
        self.name = name
        super().__init__(f"Failed to {action}: Source not found: {name}")


class InvalidStateError(ArchiveManagerError):
    """The source is not in the state required by the operation."""

    def __init__(self, name: str, status: Any, action: str = "operate on"):
        self.name = name
        self.status = status
        super().__init__(
            f"Failed to {action}: Source state invalid: "
            f"{name} is {getattr(status, 'value', status)}"
        )


class StorageError(ArchiveManagerError):
    """Storage backend read/write failure, or a missing stored entry."""


class ParseError(ArchiveManagerError):
    """A stored packet could not be parsed."""


class CredentialError(ArchiveManagerError):
    """Credentials could not be encrypted, decrypted or marshalled."""
