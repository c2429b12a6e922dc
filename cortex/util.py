"""
Identifier and clock helpers.

Node, subtask and attachment ids come from the OS random source. When that
source is missing the fallback mixes a pseudo-random value with the current
time; its collision guarantee is weaker and every use is logged.
"""

from __future__ import annotations

import logging
import os
import random
import time
import uuid

logger = logging.getLogger(__name__)

_CROCKFORD32 = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"


def _encode_crockford_base32(value: int, length: int) -> str:
    chars: list[str] = []
    for _ in range(length):
        chars.append(_CROCKFORD32[value & 31])
        value >>= 5
    return "".join(reversed(chars))


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id() -> str:
    """
    Generate a node/attachment identifier.

    Normally a UUID4 built from os.urandom. Without an OS entropy source the
    id is 12 pseudo-random chars followed by the millisecond timestamp, both
    Crockford base32. That id is unique only with high probability within a
    single process and is not suitable as an unguessable token.
    """
    try:
        return str(uuid.UUID(bytes=os.urandom(16), version=4))
    except NotImplementedError:
        logger.warning("No OS randomness source; using weaker timestamp-based id fallback")
        return weak_id()


def weak_id(*, timestamp_ms: int | None = None) -> str:
    """Pseudo-random + timestamp id (lower collision resistance than new_id)."""
    if timestamp_ms is None:
        timestamp_ms = now_ms()

    if not (0 <= timestamp_ms < (1 << 48)):
        raise ValueError("timestamp_ms out of range")

    randomness = random.getrandbits(60)
    return _encode_crockford_base32(randomness, 12) + _encode_crockford_base32(timestamp_ms, 10)
