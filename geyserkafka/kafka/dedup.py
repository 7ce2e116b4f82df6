"""Deduplication of messages keyed by slot and payload hash."""

from __future__ import annotations

import abc
import asyncio

HASH_SIZE = 32
SLOT_WINDOW = 75


class KafkaDedup(abc.ABC):
    """Decides whether a message has not been seen before."""

    @abc.abstractmethod
    async def allowed(self, slot: int, hash: bytes) -> bool:
        """Return True if the message should be forwarded."""


def _check(slot: int, hash: bytes) -> bytes:
    if isinstance(slot, bool) or not isinstance(slot, int) or slot < 0:
        raise ValueError(f"slot must be a non-negative integer, got {slot!r}")
    digest = bytes(hash)
    if len(digest) != HASH_SIZE:
        raise ValueError(f"hash must be {HASH_SIZE} bytes, got {len(digest)}")
    return digest


class KafkaDedupMemory(KafkaDedup):
    """In-memory deduplication keeping roughly the last 75 slots.

    Shallow copies share their state.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._slots: dict[int, set[bytes]] = {}

    async def allowed(self, slot: int, hash: bytes) -> bool:
        digest = _check(slot, hash)
        async with self._lock:
            slots = self._slots
            if slots and slot < min(slots):
                return False

            seen = slots.get(slot)
            if seen is None:
                slots[slot] = {digest}
                cutoff = slot - SLOT_WINDOW
                for old in [key for key in slots if key < cutoff]:
                    del slots[old]
                return True

            if digest in seen:
                return False
            seen.add(digest)
            return True