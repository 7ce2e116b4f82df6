import asyncio
import json
import threading

import pytest

from geyserkafka.kafka.metrics import (
    KAFKA_DEDUP_TOTAL,
    KAFKA_RECV_TOTAL,
    KAFKA_SENT_TOTAL,
    KAFKA_STATS,
    KafkaLogLevel,
    StatsContext,
    dedup_inc,
    recv_inc,
    sent_inc,
)
from geyserkafka.metrics import GrpcMessageKind


def test_stats_sets_broker_gauges():
    context = StatsContext()
    context.stats(
        {"brokers": {"broker-a": {"outbuf_cnt": 3, "tx": 12, "int_latency": {"p99": 5}}}}
    )
    assert KAFKA_STATS.with_label_values(("broker-a", "outbuf_cnt")).value == 3
    assert KAFKA_STATS.with_label_values(("broker-a", "tx")).value == 12
    assert KAFKA_STATS.with_label_values(("broker-a", "int_latency.p99")).value == 5


def test_stats_accepts_json_text():
    context = StatsContext()
    context.stats(
        json.dumps({"brokers": {"broker-b": {"outbuf_latency": {"max": 9, "avg": 4}}}})
    )
    assert KAFKA_STATS.with_label_values(("broker-b", "outbuf_latency.max")).value == 9
    assert KAFKA_STATS.with_label_values(("broker-b", "outbuf_latency.avg")).value == 4


@pytest.mark.parametrize(
    "level",
    [KafkaLogLevel.EMERG, KafkaLogLevel.ALERT, KafkaLogLevel.CRITICAL, KafkaLogLevel.ERROR],
)
def test_error_levels_signal(level):
    context = StatsContext()
    context.log(level, "FAC", "broken")
    assert context.has_error() is True


@pytest.mark.parametrize(
    "level", [KafkaLogLevel.WARNING, KafkaLogLevel.NOTICE, KafkaLogLevel.INFO, KafkaLogLevel.DEBUG]
)
def test_other_levels_do_not_signal(level):
    context = StatsContext()
    context.log(level, "FAC", "fine")
    assert context.has_error() is False


def test_error_callback_signals():
    context = StatsContext()
    context.error("BrokerTransportFailure", "connection refused")
    assert context.has_error() is True


@pytest.mark.asyncio
async def test_wait_error_returns_after_error():
    context = StatsContext()
    waiter = asyncio.ensure_future(context.wait_error())
    await asyncio.sleep(0)
    assert not waiter.done()
    context.error("failure", "reason")
    await asyncio.wait_for(waiter, timeout=5)
    assert waiter.done() and waiter.exception() is None


@pytest.mark.asyncio
async def test_wait_error_from_other_thread():
    context = StatsContext()
    waiter = asyncio.ensure_future(context.wait_error())
    await asyncio.sleep(0)
    thread = threading.Thread(target=context.log, args=(KafkaLogLevel.ERROR, "FAC", "boom"))
    thread.start()
    await asyncio.wait_for(waiter, timeout=5)
    thread.join()
    assert context.has_error() is True


@pytest.mark.asyncio
async def test_wait_error_immediate_when_already_failed():
    context = StatsContext()
    context.error("failure", "reason")
    assert await asyncio.wait_for(context.wait_error(), timeout=5) is None


def test_counters_increment():
    dedup_before = KAFKA_DEDUP_TOTAL.value
    recv_before = KAFKA_RECV_TOTAL.value
    dedup_inc()
    recv_inc()
    recv_inc()
    assert KAFKA_DEDUP_TOTAL.samples() == [((), dedup_before + 1)]
    assert KAFKA_RECV_TOTAL.samples() == [((), recv_before + 2)]


def test_sent_inc_uses_kind_label():
    child = KAFKA_SENT_TOTAL.with_label_values(("account",))
    before = child.value
    sent_inc(GrpcMessageKind.ACCOUNT)
    assert child.value - before == 1