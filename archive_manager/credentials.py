"""
Credentials: live credential objects and their encrypted counterparts.

A :class:`Credentials` instance holds decrypted credential material (a source
type tag, an optional password and free-form data). It can be encrypted into
a string with ``to_secure_string(password)``; an :class:`EncryptedCredentials`
wraps such a string and turns it back into a :class:`Credentials` given the
same password.

Security Note:
    Never log credential data, passwords or encrypted strings.
"""
import asyncio
from typing import Any, Optional, Protocol, runtime_checkable

import orjson

from .crypto import encrypt_with_password, decrypt_with_password
from .exceptions import CredentialError


@runtime_checkable
class SecureCredentials(Protocol):
    """Credential object that can be encrypted to a string."""

    async def to_secure_string(self, password: str) -> str:
        """Encrypt this object to an opaque string using ``password``."""
        ...


class Credentials:
    """Decrypted credentials for a source or an archive.

    Archive credentials carry the ``password`` protecting the archive; it is
    also used to encrypt the source credentials when the source is locked.
    """

    def __init__(
        self,
        type: str = "",
        password: Optional[str] = None,
        data: Optional[dict[str, Any]] = None,
    ):
        self._type = type
        self._password = password
        self._data: dict[str, Any] = dict(data or {})

    def __repr__(self) -> str:
        return f"<Credentials type={self._type!r} keys={sorted(self._data)}>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Credentials):
            return NotImplemented
        return (
            self._type == other._type
            and self._password == other._password
            and self._data == other._data
        )

    @property
    def type(self) -> str:
        return self._type

    @property
    def password(self) -> Optional[str]:
        return self._password

    @property
    def data(self) -> dict[str, Any]:
        return self._data

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self._type,
            "password": self._password,
            "data": self._data,
        }

    async def to_secure_string(self, password: str) -> str:
        """Encrypt these credentials.

        Args:
            password: Password used to derive the encryption key.

        Returns:
            Encrypted credentials string.

        Raises:
            CredentialError: If the password is empty or the data cannot be
                serialized.
        """
        try:
            payload = orjson.dumps(self.to_dict())
        except TypeError as err:
            raise CredentialError(
                f"Credentials of type {self._type!r} are not serializable: {err}"
            ) from err
        # key derivation is CPU-bound; keep it off the event loop
        return await asyncio.to_thread(encrypt_with_password, payload, password)

    @classmethod
    async def from_secure_string(cls, content: str, password: str) -> "Credentials":
        """Decrypt an encrypted credentials string.

        Args:
            content: String produced by :meth:`to_secure_string`.
            password: Password it was encrypted with.

        Returns:
            Decrypted Credentials instance.

        Raises:
            CredentialError: If the password is wrong or the content is
                malformed.
        """
        plaintext = await asyncio.to_thread(decrypt_with_password, content, password)
        try:
            payload = orjson.loads(plaintext)
        except ValueError as err:
            raise CredentialError(f"Decrypted credentials are malformed: {err}") from err
        if not isinstance(payload, dict):
            raise CredentialError("Decrypted credentials are malformed: expected an object")
        return cls(
            type=payload.get("type", ""),
            password=payload.get("password"),
            data=payload.get("data"),
        )


class EncryptedCredentials:
    """An encrypted credentials string bound to the password that opens it."""

    def __init__(self, content: str, password: Optional[str] = None):
        self.content = content
        self.password = password

    def __repr__(self) -> str:
        return "<EncryptedCredentials>"

    async def decrypt(self, password: Optional[str] = None) -> Credentials:
        """Decrypt into a live :class:`Credentials` object.

        Args:
            password: Overrides the bound password when given.

        Raises:
            CredentialError: If no password is available or decryption fails.
        """
        secret = password or self.password
        if not secret:
            raise CredentialError("Cannot decrypt credentials: no password supplied")
        return await Credentials.from_secure_string(self.content, secret)
