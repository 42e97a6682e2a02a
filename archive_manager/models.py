"""Archive Manager data models: source status, records, descriptors and packets."""
from enum import Enum
from typing import Any, Optional

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ParseError


class ArchiveStatus(str, Enum):
    """State of a registered source."""

    UNLOCKED = "unlocked"
    LOCKED = "locked"
    PROCESSING = "processing"


class SourceRecord(BaseModel):
    """A registered credential source.

    When ``UNLOCKED`` the credential fields hold live credential objects;
    when ``LOCKED`` they hold encrypted strings. ``unlock`` is set only while
    a locked record is being unlocked.
    """

    name: str
    type: str
    status: ArchiveStatus
    source_credentials: Any = None
    archive_credentials: Any = None
    unlock: bool = False


class SourceDescriptor(BaseModel):
    """Marshaller output describing one source with live credentials."""

    name: Optional[str] = None
    type: str
    source_credentials: Any
    archive_credentials: Any


class ArchivePacket(BaseModel):
    """Persisted form of a source: its name, type and encrypted credentials."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    source_credentials: str = Field(alias="sourceCredentials")
    archive_credentials: str = Field(alias="archiveCredentials")
    type: str

    def dumps(self) -> str:
        """Serialize as a JSON object using the stored field names."""
        return orjson.dumps(self.model_dump(by_alias=True)).decode("utf-8")

    @classmethod
    def loads(cls, raw: str, key: str = "") -> "ArchivePacket":
        """Parse a stored packet.

        Raises:
            ParseError: If ``raw`` is not valid JSON or lacks a field.
        """
        try:
            return cls.model_validate(orjson.loads(raw))
        except (orjson.JSONDecodeError, ValidationError) as err:
            raise ParseError(f"Malformed source packet {key}: {err}") from err
