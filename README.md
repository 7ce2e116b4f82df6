# geyserkafka

Building blocks for a service that moves a Geyser gRPC update stream into
Kafka and back:

- configuration loading from YAML (`.yaml`, `.yml`) or JSON (`.json`) files;
- typed subscribe-request settings that turn into the request structure sent
  to a Geyser endpoint;
- in-memory, per-slot deduplication of Kafka messages;
- Prometheus-style counters and gauges, rendered in the text exposition
  format and served over HTTP on `/metrics`;
- logging setup and a shutdown signal for asyncio programs.

## Installation

The package needs Python 3.10 or newer and depends only on PyYAML. The `test`
extra adds pytest and pytest-asyncio for running the test suite.

## What the package does not do

It has no command-line program, and it does not talk to Kafka or to a Geyser
gRPC endpoint itself: there is no Kafka producer or consumer, no gRPC client
that subscribes to updates, and no gRPC server that re-broadcasts them. It
provides the configuration, request structure, deduplication, metrics and
client-callback handling that such a bridge is built from; the transport is
up to the program that uses it.

## Configuration

A configuration file holds global Kafka client settings and one optional
section per mode of operation:

```json
{
  // comments and trailing commas are accepted in .json files
  "prometheus": "127.0.0.1:8873",
  "kafka": {
    "bootstrap.servers": "localhost:9092"
  },
  "dedup": {
    "kafka_input": "grpc1",
    "kafka_output": "grpc2",
    "kafka_queue_size": "10_000",
    "backend": { "type": "memory" }
  },
  "grpc2kafka": {
    "endpoint": "http://localhost:10000",
    "x_token": "token",
    "request": {
      "slots": { "client": { "filter_by_commitment": true } },
      "accounts": {
        "client": {
          "owner": ["TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"],
          "filters": [{ "DataSize": 165 }]
        }
      },
      "commitment": "processed"
    },
    "kafka_topic": "grpc1"
  },
  "kafka2grpc": {
    "kafka_topic": "grpc2",
    "listen": "127.0.0.1:10001"
  }
}
```

- `kafka_queue_size` defaults to 10,000 and may be an integer or a string with
  `_` separators (see `geyserkafka.config.parse_usize_str`).
- `channel_capacity` in `kafka2grpc` defaults to 250,000.
- `prometheus` and `listen` are `ip:port` or `[ipv6]:port` and become
  `(host, port)` tuples (`geyserkafka.kafka.config.parse_socket_addr`).
- `commitment` is one of `processed`, `confirmed`, `finalized`.

Load and inspect it:

```python
from geyserkafka.kafka.config import load_config

config = load_config("config-kafka.json")
grpc2kafka = config.grpc2kafka
request = grpc2kafka.request.to_proto()
print(grpc2kafka.endpoint, grpc2kafka.kafka_topic, grpc2kafka.kafka_queue_size)
```

`geyserkafka.config.load(path)` returns the raw parsed document;
`load_config` validates it into `Config`, `ConfigDedup`, `ConfigGrpc2Kafka`
and `ConfigKafka2Grpc`. A missing file, an unknown extension, malformed
content, a missing required field or a value of the wrong type raises
`geyserkafka.config.ConfigError` (a `ValueError`).

`ConfigGrpcRequest.to_proto()` returns a dict with the subscribe-request
fields `slots`, `accounts`, `transactions`, `transactions_status`, `entry`,
`blocks`, `blocks_meta`, `commitment` (the numeric level), `accounts_data_slice`,
`ping` and `from_slot`.

### Account filters

Each entry of an accounts section's `filters` list is one of:

| Value                                                  | Class                             |
|--------------------------------------------------------|-----------------------------------|
| `{"Memcmp": {"offset": 0, "base58": "..."}}`           | `AccountsFilterMemcmp`            |
| `{"DataSize": 165}`                                    | `AccountsFilterDataSize`          |
| `"TokenAccountState"`                                  | `AccountsFilterTokenAccountState` |
| `{"Lamports": {"Gt": 1000}}` (`Eq`, `Ne`, `Lt`, `Gt`)  | `AccountsFilterLamports`          |

`parse_accounts_filter` turns such a value into the matching class, and
`to_value()` turns it back, so filters round-trip through JSON unchanged.

## Deduplication

Messages are keyed by slot and a 32-byte hash. `KafkaDedupMemory` lets the
first message for each pair through and rejects repeats. It also rejects
anything older than the oldest slot it still remembers, and forgets slots more
than 75 behind a newly seen slot. A slot that is not a non-negative integer or
a hash that is not 32 bytes raises `ValueError`.

```python
import asyncio

from geyserkafka.kafka.dedup import KafkaDedupMemory


async def demo() -> None:
    dedup = KafkaDedupMemory()
    digest = bytes(32)
    assert await dedup.allowed(100, digest)
    assert not await dedup.allowed(100, digest)


asyncio.run(demo())
```

`ConfigDedupBackend.MEMORY.create()` is a coroutine that returns a new
`KafkaDedupMemory`.

## Metrics

`geyserkafka.metrics` provides `Counter`, `CounterVec`, `Gauge`, `GaugeVec`
and a `Registry` whose `encode()` renders the text exposition format, with
collectors sorted by name. `register_collectors()` registers the version
counter and the Kafka collectors with `REGISTRY` once, however often it is
called. `handle_request(path)` answers `/metrics` with status 200 and the
rendered metrics, and every other path with 404. `run_server(address)` is a
coroutine that registers the collectors, starts an asyncio HTTP server on the
`(host, port)` address and returns it.

`GrpcMessageKind` names the kinds of subscribe update; `from_update` maps an
update field name such as `"transaction_status"` to its kind.

`geyserkafka.kafka.metrics` holds the Kafka counters (`recv_inc`, `dedup_inc`,
`sent_inc(kind)` with a `GrpcMessageKind`) and `StatsContext`:

- `stats(statistics)` takes the client's statistics (a mapping or JSON text)
  and sets per-broker gauges in `KAFKA_STATS`;
- `error(error, reason)`, or `log(level, fac, message)` at `KafkaLogLevel.ERROR`
  or worse, flags the context as failed;
- `has_error()` reports the flag, and `wait_error()` waits until it is set.

`geyserkafka.version.VERSION` holds the version information recorded in the
`version` metric; `to_json()` renders it as compact JSON.

## Runtime helpers

`geyserkafka.runtime.setup_tracing(stream=None)` installs a log handler on the
root logger, writing to standard output by default, at level INFO. Colour is
used only when both the stream and standard error are terminals. The
`GEYSERKAFKA_LOG` environment variable holds comma-separated directives,
either `level` or `logger=level`, with levels `trace`, `debug`, `info`,
`warn`, `error` or `off`. Calling it a second time raises `RuntimeError`.

`create_shutdown()`, called inside a running event loop, returns a future
that completes on SIGINT or SIGTERM.