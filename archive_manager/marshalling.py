"""
Credential marshalling: turn credential specifications into source descriptors.

A marshaller is any async callable with the signature of
:func:`credentials_to_sources`. The archive manager calls it when a source is
added, and again on unlock with the stored ciphertext wrapped in
:class:`~archive_manager.credentials.EncryptedCredentials`.
"""
import logging
from typing import Any, Protocol

from .credentials import Credentials, EncryptedCredentials
from .exceptions import CredentialError
from .models import SourceDescriptor

logger = logging.getLogger("archive_manager")


class CredentialMarshaller(Protocol):
    """Async callable converting credential specs into source descriptors."""

    async def __call__(
        self,
        source_credentials: Any,
        archive_credentials: Any,
        initialize: bool = False,
    ) -> list[SourceDescriptor]:
        ...


async def _resolve(spec: Any, label: str, initialize: bool) -> Credentials:
    """Return live credentials for a spec, decrypting it when needed."""
    if isinstance(spec, Credentials):
        return spec
    if isinstance(spec, EncryptedCredentials):
        if initialize:
            raise CredentialError(
                f"Cannot initialize a source from encrypted {label} credentials"
            )
        return await spec.decrypt()
    raise CredentialError(
        f"Unsupported {label} credentials: {type(spec).__name__}"
    )


async def credentials_to_sources(
    source_credentials: Any,
    archive_credentials: Any,
    initialize: bool = False,
) -> list[SourceDescriptor]:
    """Default marshaller: one source per pair of credentials.

    Args:
        source_credentials: :class:`Credentials` or :class:`EncryptedCredentials`
            describing where the archive lives.
        archive_credentials: :class:`Credentials` or :class:`EncryptedCredentials`
            holding the archive password.
        initialize: Whether the archive is being created. Requires live
            credentials.

    Returns:
        A single descriptor; its name is left to the caller.

    Raises:
        CredentialError: If a spec is unsupported, cannot be decrypted, or
            the archive credentials carry no password.
    """
    source = await _resolve(source_credentials, "source", initialize)
    archive = await _resolve(archive_credentials, "archive", initialize)
    if not archive.password:
        raise CredentialError("Archive credentials must include a password")
    logger.debug("Marshalled source credentials of type %s", source.type)
    return [
        SourceDescriptor(
            type=source.type,
            source_credentials=source,
            archive_credentials=archive,
        )
    ]
