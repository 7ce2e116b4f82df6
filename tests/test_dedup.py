import copy

import pytest

from geyserkafka.kafka.dedup import KafkaDedup, KafkaDedupMemory

A = bytes(32)
B = b"\x01" * 32
C = b"\x02" * 32


@pytest.mark.asyncio
async def test_first_message_allowed_and_repeat_rejected():
    dedup = KafkaDedupMemory()
    assert await dedup.allowed(10, A) is True
    assert await dedup.allowed(10, A) is False


@pytest.mark.asyncio
async def test_different_hash_same_slot_allowed():
    dedup = KafkaDedupMemory()
    assert await dedup.allowed(10, A) is True
    assert await dedup.allowed(10, B) is True
    assert await dedup.allowed(10, B) is False


@pytest.mark.asyncio
async def test_slot_older_than_oldest_rejected():
    dedup = KafkaDedupMemory()
    assert await dedup.allowed(50, A) is True
    assert await dedup.allowed(10, B) is False


@pytest.mark.asyncio
async def test_recent_slots_are_kept():
    dedup = KafkaDedupMemory()
    assert await dedup.allowed(10, A) is True
    assert await dedup.allowed(50, B) is True
    assert await dedup.allowed(10, A) is False
    assert await dedup.allowed(10, C) is True


@pytest.mark.asyncio
async def test_old_slots_are_pruned():
    dedup = KafkaDedupMemory()
    assert await dedup.allowed(10, A) is True
    assert await dedup.allowed(200, B) is True
    # slot 10 was dropped, so it is now older than the oldest kept slot
    assert await dedup.allowed(10, C) is False
    assert await dedup.allowed(200, A) is True


@pytest.mark.asyncio
async def test_copies_share_state():
    dedup = KafkaDedupMemory()
    clone = copy.copy(dedup)
    assert await dedup.allowed(10, A) is True
    assert await clone.allowed(10, A) is False


@pytest.mark.asyncio
async def test_bad_hash_length_rejected():
    dedup = KafkaDedupMemory()
    with pytest.raises(ValueError):
        await dedup.allowed(1, b"short")


@pytest.mark.asyncio
async def test_negative_slot_rejected():
    dedup = KafkaDedupMemory()
    with pytest.raises(ValueError):
        await dedup.allowed(-1, A)


def test_abstract_base_cannot_be_instantiated():
    with pytest.raises(TypeError):
        KafkaDedup()