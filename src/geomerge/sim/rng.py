from __future__ import annotations

import hashlib
import random


def derive_key_seed(key: str) -> int:
    """Derive a deterministic 64-bit RNG seed from a string key."""
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=False)


def luck(key: str) -> float:
    """Stable pseudo-random draw in ``[0, 1)`` for a string key."""
    return random.Random(derive_key_seed(key)).random()
