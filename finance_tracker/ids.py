"""
Locally generated identifiers.

Format: {prefix}_{epoch_millis}_{random}[_{random}...]

The millisecond timestamp keeps ids roughly ordered by creation time.
Extra random suffixes make ids created within the same millisecond
(e.g. bulk category creation) mutually unique.
"""

import secrets
import string
import time

_ALPHABET = string.ascii_lowercase + string.digits

CATEGORY_PREFIX = "cat"
MANUAL_ACCOUNT_PREFIX = "manual"
MANUAL_TRANSACTION_PREFIX = "tx"
DEBT_ENTITY_PREFIX = "entity"
DEBT_PREFIX = "debt"


def _random_suffix(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def generate_local_id(prefix: str, suffix_lengths: tuple[int, ...] = (4,)) -> str:
    """
    Generate a new local id.

    Args:
        prefix: Namespace of the id (e.g. "cat", "manual")
        suffix_lengths: One random suffix is appended per entry

    Returns:
        The generated id
    """
    parts = [prefix, str(time.time_ns() // 1_000_000)]
    parts.extend(_random_suffix(length) for length in suffix_lengths)
    return "_".join(parts)
