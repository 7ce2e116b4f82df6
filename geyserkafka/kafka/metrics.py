"""Kafka client metrics and error signalling."""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import threading
from typing import Any, Mapping

from ..metrics import Counter, CounterVec, GaugeVec, GrpcMessageKind

logger = logging.getLogger(__name__)

KAFKA_STATS = GaugeVec("kafka_stats", "librdkafka metrics", ("broker", "metric"))
KAFKA_DEDUP_TOTAL = Counter("kafka_dedup_total", "Total number of deduplicated messages")
KAFKA_RECV_TOTAL = Counter("kafka_recv_total", "Total number of received messages")
KAFKA_SENT_TOTAL = CounterVec(
    "kafka_sent_total", "Total number of uploaded messages by type", ("kind",)
)

_BROKER_FIELDS = (
    "outbuf_cnt",
    "outbuf_msg_cnt",
    "waitresp_cnt",
    "waitresp_msg_cnt",
    "tx",
    "txerrs",
    "txretries",
    "req_timeouts",
)
_WINDOWS = ("int_latency", "outbuf_latency")
_WINDOW_FIELDS = (
    "min",
    "max",
    "avg",
    "sum",
    "cnt",
    "stddev",
    "hdrsize",
    "p50",
    "p75",
    "p90",
    "p95",
    "p99",
    "p99_99",
    "outofrange",
)


class KafkaLogLevel(enum.IntEnum):
    """Syslog-style levels used by the Kafka client library."""

    EMERG = 0
    ALERT = 1
    CRITICAL = 2
    ERROR = 3
    WARNING = 4
    NOTICE = 5
    INFO = 6
    DEBUG = 7


_ERROR_LEVELS = frozenset(
    {KafkaLogLevel.EMERG, KafkaLogLevel.ALERT, KafkaLogLevel.CRITICAL, KafkaLogLevel.ERROR}
)
_LOGGING_LEVELS = {
    KafkaLogLevel.EMERG: logging.ERROR,
    KafkaLogLevel.ALERT: logging.ERROR,
    KafkaLogLevel.CRITICAL: logging.ERROR,
    KafkaLogLevel.ERROR: logging.ERROR,
    KafkaLogLevel.WARNING: logging.WARNING,
    KafkaLogLevel.NOTICE: logging.INFO,
    KafkaLogLevel.INFO: logging.INFO,
    KafkaLogLevel.DEBUG: logging.DEBUG,
}


def _resolve(future: asyncio.Future[None]) -> None:
    if not future.done():
        future.set_result(None)


class StatsContext:
    """Client callbacks: exports statistics and signals the first fatal error."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._failed = False
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future[None]]] = []

    def stats(self, statistics: Mapping[str, Any] | str | bytes) -> None:
        """Export per-broker statistics; fields that are absent are left untouched."""
        if isinstance(statistics, (str, bytes)):
            statistics = json.loads(statistics)
        for name, broker in statistics.get("brokers", {}).items():
            for metric in _BROKER_FIELDS:
                if metric in broker:
                    KAFKA_STATS.with_label_values((name, metric)).set(broker[metric])
            for window_name in _WINDOWS:
                window = broker.get(window_name)
                if not window:
                    continue
                for metric in _WINDOW_FIELDS:
                    if metric in window:
                        KAFKA_STATS.with_label_values(
                            (name, f"{window_name}.{metric}")
                        ).set(window[metric])

    def log(self, level: KafkaLogLevel | int, fac: str, message: str) -> None:
        level = KafkaLogLevel(level)
        logger.log(_LOGGING_LEVELS[level], "librdkafka: %s %s", fac, message)
        if level in _ERROR_LEVELS:
            self._send_error()

    def error(self, error: Any, reason: str) -> None:
        logger.error("librdkafka: %s: %s", error, reason)
        self._send_error()

    def has_error(self) -> bool:
        return self._failed

    async def wait_error(self) -> None:
        """Wait until an error has been reported."""
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._failed:
                return
            future: asyncio.Future[None] = loop.create_future()
            entry = (loop, future)
            self._waiters.append(entry)
        try:
            await future
        finally:
            with self._lock:
                if entry in self._waiters:
                    self._waiters.remove(entry)

    def _send_error(self) -> None:
        with self._lock:
            if self._failed:
                return
            self._failed = True
            waiters, self._waiters = self._waiters, []
        for loop, future in waiters:
            try:
                loop.call_soon_threadsafe(_resolve, future)
            except RuntimeError:
                pass


def dedup_inc() -> None:
    KAFKA_DEDUP_TOTAL.inc()


def recv_inc() -> None:
    KAFKA_RECV_TOTAL.inc()


def sent_inc(kind: GrpcMessageKind) -> None:
    KAFKA_SENT_TOTAL.with_label_values((kind.as_str(),)).inc()