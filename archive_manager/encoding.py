"""
Storage key encoding.

Storage keys for source packets are derived as::

    STORAGE_KEY_PREFIX + str(string_hash(source_type + source_name))

``string_hash`` is a non-cryptographic djb2-xor hash. Two sources whose
``type + name`` collide will overwrite each other's packet; collisions are
not detected.
"""
from typing import Callable, Optional

STORAGE_KEY_PREFIX = "bcup_archivemgr_"
STORAGE_KEY_COLLECTION = "bcup_archivemgr__keys_"

_HASH_SEED = 5381
_UINT32_MASK = 0xFFFFFFFF


def string_hash(value: str) -> int:
    """Hash a string to an unsigned 32-bit integer.

    Walks the UTF-16 code units of ``value`` from last to first, computing
    ``hash = (hash * 33) ^ unit`` starting from 5381.

    Args:
        value: String to hash.

    Returns:
        Unsigned 32-bit hash.
    """
    units = value.encode("utf-16-le")
    result = _HASH_SEED
    for idx in range(len(units) - 2, -1, -2):
        unit = units[idx] | (units[idx + 1] << 8)
        result = ((result * 33) ^ unit) & _UINT32_MASK
    return result


def encode_storage_name(name: str) -> str:
    """Encode a name as the decimal string of its hash."""
    return str(string_hash(name))


def storage_key(
    source_type: str,
    name: str,
    prefix: str = STORAGE_KEY_PREFIX,
    hasher: Optional[Callable[[str], str]] = None,
    collection_key: str = STORAGE_KEY_COLLECTION,
) -> str:
    """Derive the storage key holding a source's packet.

    Args:
        source_type: Source type tag.
        name: Source name.
        prefix: Key prefix shared by every packet key.
        hasher: Pure function mapping a string to a key suffix. Defaults to
            :func:`encode_storage_name`.
        collection_key: Reserved key of the collection index.

    Returns:
        Storage key name.

    Raises:
        ValueError: If the key contains ``,`` or equals the collection key.
    """
    encode = hasher or encode_storage_name
    key = f"{prefix}{encode(f'{source_type}{name}')}"
    if "," in key:
        raise ValueError(f"Storage key cannot contain ',': {key!r}")
    if key == collection_key:
        raise ValueError(f"Storage key collides with the collection index: {key!r}")
    return key
