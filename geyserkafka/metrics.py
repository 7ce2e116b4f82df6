"""Prometheus-style metrics and the HTTP endpoint that exposes them."""

from __future__ import annotations

import asyncio
import enum
import logging
import math
import threading
from http import HTTPStatus
from typing import Sequence, Union
from urllib.parse import urlsplit

from .version import LABEL_NAMES, VERSION as VERSION_INFO

logger = logging.getLogger(__name__)

Number = Union[int, float]


class Counter:
    """A monotonically increasing counter."""

    kind = "counter"

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self.value: Number = 0
        self._lock = threading.Lock()

    def inc(self, amount: Number = 1) -> None:
        if amount < 0:
            raise ValueError("counters can only be increased")
        with self._lock:
            self.value += amount

    def samples(self) -> list:
        return [((), self.value)]


class Gauge:
    """A value that can be set freely."""

    kind = "gauge"

    def __init__(self, name: str, help_text: str = "") -> None:
        self.name = name
        self.help_text = help_text
        self.value = 0.0

    def set(self, value: Number) -> None:
        self.value = float(value)

    def samples(self) -> list:
        return [((), self.value)]


class _MetricVec:
    kind = ""
    _child: type = Counter

    def __init__(self, name: str, help_text: str, label_names: Sequence[str]) -> None:
        self.name = name
        self.help_text = help_text
        self.label_names = tuple(label_names)
        self._children: dict = {}
        self._lock = threading.Lock()

    def _child_for(self, values: Sequence[str]):
        key = tuple(values)
        if len(key) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values, got {len(key)}"
            )
        with self._lock:
            return self._children.setdefault(key, self._child(self.name, self.help_text))

    def samples(self) -> list:
        with self._lock:
            children = sorted(self._children.items())
        return [(tuple(zip(self.label_names, key)), child.value) for key, child in children]


class CounterVec(_MetricVec):
    """Counters distinguished by labels."""

    kind = "counter"
    _child = Counter

    def with_label_values(self, values: Sequence[str]) -> Counter:
        """Return the counter for these label values, creating it if needed."""
        return self._child_for(values)


class GaugeVec(_MetricVec):
    """Gauges distinguished by labels."""

    kind = "gauge"
    _child = Gauge

    def with_label_values(self, values: Sequence[str]) -> Gauge:
        """Return the gauge for these label values, creating it if needed."""
        return self._child_for(values)


def _escape(text: str, quote: bool = False) -> str:
    text = text.replace("\\", "\\\\").replace("\n", "\\n")
    return text.replace('"', '\\"') if quote else text


def _format_value(value: Number) -> str:
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return str(int(value)) if value.is_integer() else repr(value)


class Registry:
    """Collectors rendered together in text exposition format."""

    def __init__(self) -> None:
        self._collectors: dict = {}
        self._lock = threading.Lock()

    def register(self, collector) -> None:
        with self._lock:
            if collector.name in self._collectors:
                raise ValueError(
                    f"duplicate metrics collector registration attempted: {collector.name}"
                )
            self._collectors[collector.name] = collector

    def encode(self) -> str:
        """Render collectors sorted by name, skipping those without samples."""
        with self._lock:
            collectors = sorted(self._collectors.items())
        lines = []
        for name, collector in collectors:
            samples = collector.samples()
            if not samples:
                continue
            lines.append(f"# HELP {name} {_escape(collector.help_text)}\n")
            lines.append(f"# TYPE {name} {collector.kind}\n")
            for labels, value in samples:
                pairs = ",".join(f'{key}="{_escape(val, True)}"' for key, val in labels)
                rendered = "{" + pairs + "}" if labels else ""
                lines.append(f"{name}{rendered} {_format_value(value)}\n")
        return "".join(lines)


REGISTRY = Registry()
VERSION = CounterVec("version", "Plugin version info", LABEL_NAMES)

_registered = False
_register_lock = threading.Lock()


def register_collectors() -> None:
    """Register all collectors with ``REGISTRY`` and record version info, once."""
    global _registered
    with _register_lock:
        if _registered:
            return
        from .kafka import metrics as kafka_metrics

        for collector in (
            VERSION,
            kafka_metrics.KAFKA_STATS,
            kafka_metrics.KAFKA_DEDUP_TOTAL,
            kafka_metrics.KAFKA_RECV_TOTAL,
            kafka_metrics.KAFKA_SENT_TOTAL,
        ):
            REGISTRY.register(collector)
        VERSION.with_label_values(VERSION_INFO.label_values()).inc()
        _registered = True


class GrpcMessageKind(str, enum.Enum):
    """Kind of a subscribe update, used as a metric label."""

    ACCOUNT = "account"
    SLOT = "slot"
    TRANSACTION = "transaction"
    TRANSACTION_STATUS = "transactionstatus"
    BLOCK = "block"
    PING = "ping"
    PONG = "pong"
    BLOCK_META = "blockmeta"
    ENTRY = "entry"
    UNKNOWN = "unknown"

    @classmethod
    def from_update(cls, name: str) -> GrpcMessageKind:
        """Map the name of a subscribe update's oneof field to its kind."""
        if name == "unknown":
            raise ValueError(f"unknown update kind: {name!r}")
        try:
            return cls(name.replace("_", ""))
        except ValueError:
            raise ValueError(f"unknown update kind: {name!r}") from None

    def as_str(self) -> str:
        return self.value


def handle_request(path: str) -> tuple[int, bytes]:
    """Answer a request for ``path`` with a status code and body."""
    if path == "/metrics":
        return HTTPStatus.OK.value, REGISTRY.encode().encode("utf-8")
    return HTTPStatus.NOT_FOUND.value, b""


async def _serve_connection(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
    try:
        request_line = await reader.readline()
        while (await reader.readline()) not in (b"\r\n", b"\n", b""):
            pass
        parts = request_line.decode("latin-1").split()
        target = parts[1] if len(parts) >= 2 else "/"
        status, body = handle_request(urlsplit(target).path)
        head = (
            f"HTTP/1.1 {status} {HTTPStatus(status).phrase}\r\n"
            f"Content-Length: {len(body)}\r\nConnection: close\r\n\r\n"
        )
        writer.write(head.encode("latin-1") + body)
        await writer.drain()
    except (ConnectionError, asyncio.IncompleteReadError, ValueError) as error:
        logger.error("failed to handle request: %s", error)
    finally:
        writer.close()


async def run_server(address: tuple[str, int]) -> asyncio.AbstractServer:
    """Start serving ``/metrics`` on ``address`` and return the server."""
    register_collectors()
    host, port = address
    server = await asyncio.start_server(_serve_connection, host, port)
    logger.info("prometheus server started: %s", address)
    return server