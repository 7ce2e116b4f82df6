import asyncio

import pytest

from geyserkafka.metrics import (
    REGISTRY,
    VERSION,
    Counter,
    CounterVec,
    Gauge,
    GaugeVec,
    GrpcMessageKind,
    Registry,
    handle_request,
    register_collectors,
    run_server,
)
from geyserkafka.version import VERSION as VERSION_INFO


def test_counter_inc():
    counter = Counter("requests_total", "Total requests")
    counter.inc()
    counter.inc(4)
    assert counter.value == 5


def test_counter_rejects_negative():
    counter = Counter("requests_total")
    with pytest.raises(ValueError):
        counter.inc(-1)


def test_gauge_set():
    gauge = Gauge("depth")
    gauge.set(7)
    assert gauge.value == 7.0


def test_counter_vec_reuses_children():
    vec = CounterVec("sent_total", "Sent", ("kind",))
    first = vec.with_label_values(("a",))
    first.inc()
    assert vec.with_label_values(["a"]) is first
    assert vec.with_label_values(("b",)).value == 0


def test_vec_label_count_checked():
    vec = GaugeVec("stats", "Stats", ("broker", "metric"))
    with pytest.raises(ValueError):
        vec.with_label_values(("only-one",))


def test_registry_rejects_duplicates():
    registry = Registry()
    registry.register(Counter("requests_total"))
    with pytest.raises(ValueError):
        registry.register(Counter("requests_total"))


def test_registry_encodes_counter():
    registry = Registry()
    counter = Counter("requests_total", "Total requests")
    counter.inc()
    registry.register(counter)
    assert registry.encode() == (
        "# HELP requests_total Total requests\n"
        "# TYPE requests_total counter\n"
        "requests_total 1\n"
    )


def test_registry_encodes_labelled_gauge_and_escapes():
    registry = Registry()
    vec = GaugeVec("temp", "Temperature", ("room",))
    vec.with_label_values(('a"b',)).set(2.5)
    registry.register(vec)
    text = registry.encode()
    assert "# TYPE temp gauge\n" in text
    assert 'temp{room="a\\"b"} 2.5\n' in text


def test_registry_sorts_and_skips_empty_families():
    registry = Registry()
    registry.register(CounterVec("zeta", "Z", ("kind",)))
    registry.register(Counter("beta", "B"))
    registry.register(Counter("alpha", "A"))
    text = registry.encode()
    assert "zeta" not in text
    assert text.index("alpha") < text.index("beta")


@pytest.mark.parametrize(
    "name, expected",
    [
        ("account", "account"),
        ("transaction_status", "transactionstatus"),
        ("block_meta", "blockmeta"),
        ("entry", "entry"),
    ],
)
def test_message_kind_from_update(name, expected):
    assert GrpcMessageKind.from_update(name).as_str() == expected


def test_message_kind_unknown_update():
    with pytest.raises(ValueError):
        GrpcMessageKind.from_update("nope")


def test_register_collectors_is_idempotent():
    register_collectors()
    register_collectors()
    assert VERSION.with_label_values(VERSION_INFO.label_values()).value == 1
    assert "# TYPE kafka_recv_total counter" in REGISTRY.encode()


def test_handle_request_routes():
    status, body = handle_request("/metrics")
    assert status == 200
    assert body == REGISTRY.encode().encode("utf-8")
    assert handle_request("/other") == (404, b"")


@pytest.mark.asyncio
async def test_run_server_serves_metrics():
    server = await run_server(("127.0.0.1", 0))
    try:
        port = server.sockets[0].getsockname()[1]
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(b"GET /metrics HTTP/1.1\r\nHost: localhost\r\n\r\n")
        await writer.drain()
        data = await asyncio.wait_for(reader.read(), timeout=5)
        writer.close()
    finally:
        server.close()
        await server.wait_closed()
    assert data.startswith(b"HTTP/1.1 200")
    assert b"# TYPE version counter" in data


@pytest.mark.asyncio
async def test_run_server_not_found():
    server = await run_server(("127.0.0.1", 0))
    try:
        port = server.sockets[0].getsockname()[1]
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(b"GET /missing HTTP/1.1\r\n\r\n")
        await writer.drain()
        data = await asyncio.wait_for(reader.read(), timeout=5)
        writer.close()
    finally:
        server.close()
        await server.wait_closed()
    assert data.startswith(b"HTTP/1.1 404")