"""
Archive Crypto Core: Password-based key derivation and encryption.

Credentials are encrypted with a key derived from the archive password:
    PBKDF2-HMAC-SHA256(password, salt, iterations) → AEAD → ciphertext

Encrypted strings are base64 of:
    [iterations 4B uint32 BE][salt 16B][nonce 12B][encrypted_payload + tag 16B]

Security Note:
    Never log passwords, plaintext or ciphertext values.
"""
import os
import struct
import base64
import binascii

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from .exceptions import CredentialError

NONCE_SIZE = 12  # 96-bit nonce
SALT_SIZE = 16
TAG_SIZE = 16
ITERATIONS_SIZE = 4  # uint32 big-endian
KEY_LENGTH = 32  # 256-bit key

_DEFAULT_KDF_ITERATIONS = 100_000
MAX_KDF_ITERATIONS = 10_000_000


def _get_cipher_cls() -> type:
    """Return the AEAD cipher class based on ARCHIVE_CIPHER_BACKEND env var."""
    backend = os.environ.get("ARCHIVE_CIPHER_BACKEND", "aesgcm").lower()
    if backend == "chacha20":
        return ChaCha20Poly1305
    return AESGCM


def _get_kdf_iterations() -> int:
    """Return the PBKDF2 iteration count from ARCHIVE_KDF_ITERATIONS env var."""
    return int(os.environ.get("ARCHIVE_KDF_ITERATIONS", _DEFAULT_KDF_ITERATIONS))


# Resolved once at module load; the iteration count travels with each
# ciphertext, the cipher does not.
CIPHER_CLS = _get_cipher_cls()
KDF_ITERATIONS = _get_kdf_iterations()


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(password: str, salt: bytes, iterations: int) -> bytes:
    """Derive a 32-byte encryption key from a password using PBKDF2-SHA256.

    Args:
        password: Archive password.
        salt: Random per-ciphertext salt.
        iterations: PBKDF2 iteration count.

    Returns:
        32-byte derived key.
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


# ---------------------------------------------------------------------------
# Password-based encryption
# ---------------------------------------------------------------------------

def encrypt_with_password(plaintext: bytes, password: str) -> str:
    """Encrypt plaintext with a password.

    Args:
        plaintext: Data to encrypt.
        password: Password used for key derivation.

    Returns:
        Base64-encoded ciphertext string.
    """
    if not password:
        raise CredentialError("Cannot encrypt credentials: password is empty")
    salt = os.urandom(SALT_SIZE)
    key = derive_key(password, salt, KDF_ITERATIONS)
    cipher = CIPHER_CLS(key)
    nonce = os.urandom(NONCE_SIZE)
    ct = cipher.encrypt(nonce, plaintext, None)
    blob = struct.pack("!I", KDF_ITERATIONS) + salt + nonce + ct
    return base64.b64encode(blob).decode("ascii")


def decrypt_with_password(content: str, password: str) -> bytes:
    """Decrypt a ciphertext string produced by :func:`encrypt_with_password`.

    Args:
        content: Base64-encoded ciphertext string.
        password: Password used for key derivation.

    Returns:
        Decrypted plaintext bytes.

    Raises:
        CredentialError: If content is malformed or the password is wrong.
    """
    if not password:
        raise CredentialError("Cannot decrypt credentials: password is empty")
    try:
        blob = base64.b64decode(content, validate=True)
    except (binascii.Error, ValueError) as err:
        raise CredentialError(
            f"Encrypted credentials are not valid base64: {err}"
        ) from err
    _min = ITERATIONS_SIZE + SALT_SIZE + NONCE_SIZE + TAG_SIZE
    if len(blob) < _min:
        raise CredentialError(
            f"Encrypted credentials too short: {len(blob)} bytes "
            f"(minimum {_min})"
        )
    iterations = struct.unpack("!I", blob[:ITERATIONS_SIZE])[0]
    if not 0 < iterations <= MAX_KDF_ITERATIONS:
        raise CredentialError(
            f"Encrypted credentials request an invalid iteration count: {iterations}"
        )
    offset = ITERATIONS_SIZE
    salt = blob[offset:offset + SALT_SIZE]
    offset += SALT_SIZE
    nonce = blob[offset:offset + NONCE_SIZE]
    ct = blob[offset + NONCE_SIZE:]
    key = derive_key(password, salt, iterations)
    cipher = CIPHER_CLS(key)
    try:
        return cipher.decrypt(nonce, ct, None)
    except InvalidTag as err:
        raise CredentialError(
            "Failed to decrypt credentials: invalid password or corrupted content"
        ) from err
