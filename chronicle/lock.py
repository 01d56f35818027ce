from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from uuid import uuid4

import redis


class SlotBusyError(ValueError):
    pass


def _lock_key(slot: int) -> str:
    return f"chronicle:lock:slot:{slot}"


@contextmanager
def slot_lock(*, r: redis.Redis, slot: int, ttl_ms: int = 60_000) -> Iterator[None]:
    """Per-slot turn lock so two processes never adjudicate the same save at once.

    The TTL bounds how long a crashed holder can block the slot; it should
    exceed the generator timeout times the retry count.
    """

    key = _lock_key(slot)
    token = uuid4().hex
    if not r.set(key, token, nx=True, px=ttl_ms):
        raise SlotBusyError(f"Save slot {slot} is busy")
    try:
        yield
    finally:
        # Release only if we still hold it; an expired lock may belong to someone else now.
        if r.get(key) == token:
            r.delete(key)
