"""Configuration of the Kafka bridge actions."""

from __future__ import annotations

import enum
import ipaddress
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Tuple

from ..config import ConfigError, ConfigGrpcRequest, load, parse_usize_str
from .dedup import KafkaDedupMemory

DEFAULT_KAFKA_QUEUE_SIZE = 10_000
DEFAULT_CHANNEL_CAPACITY = 250_000

SocketAddr = Tuple[str, int]


def parse_socket_addr(value: Any) -> SocketAddr:
    """Parse ``ip:port`` or ``[ipv6]:port`` into ``(host, port)``."""
    if isinstance(value, str):
        host, _, port = value.rpartition(":")
        try:
            if host.startswith("[") and host.endswith("]"):
                address: Any = ipaddress.IPv6Address(host[1:-1])
            else:
                address = ipaddress.IPv4Address(host)
            if port.isascii() and port.isdigit() and int(port) <= 0xFFFF:
                return str(address), int(port)
        except ValueError:
            pass
    raise ConfigError(f"invalid socket address: {value!r}")


def _mapping(value: Any, what: str) -> dict:
    if not isinstance(value, dict):
        raise ConfigError(f"{what}: expected a mapping, got {value!r}")
    return value


def _required(data: dict, key: str) -> Any:
    if key not in data:
        raise ConfigError(f"missing field `{key}`")
    return data[key]


def _string(data: dict, key: str) -> str:
    value = _required(data, key)
    if not isinstance(value, str):
        raise ConfigError(f"{key}: expected a string, got {value!r}")
    return value


def _kafka(data: dict) -> dict[str, str]:
    items = _mapping(data.get("kafka", {}), "kafka")
    if not all(isinstance(item, str) for pair in items.items() for item in pair):
        raise ConfigError(f"kafka: expected strings, got {items!r}")
    return dict(items)


class ConfigDedupBackend(enum.Enum):
    MEMORY = "memory"

    @classmethod
    def from_value(cls, value: Any) -> ConfigDedupBackend:
        kind = _mapping(value, "backend").get("type")
        try:
            return cls(kind)
        except ValueError:
            raise ConfigError(f"unknown dedup backend type: {kind!r}") from None

    async def create(self) -> KafkaDedupMemory:
        return KafkaDedupMemory()


@dataclass
class ConfigDedup:
    kafka_input: str
    kafka_output: str
    backend: ConfigDedupBackend
    kafka: dict[str, str] = field(default_factory=dict)
    kafka_queue_size: int = DEFAULT_KAFKA_QUEUE_SIZE

    @classmethod
    def from_value(cls, value: Any) -> ConfigDedup:
        data = _mapping(value, "dedup")
        return cls(
            kafka=_kafka(data),
            kafka_input=_string(data, "kafka_input"),
            kafka_output=_string(data, "kafka_output"),
            kafka_queue_size=parse_usize_str(data.get("kafka_queue_size", DEFAULT_KAFKA_QUEUE_SIZE)),
            backend=ConfigDedupBackend.from_value(_required(data, "backend")),
        )


@dataclass
class ConfigGrpc2Kafka:
    endpoint: str
    request: ConfigGrpcRequest
    kafka_topic: str
    x_token: str | None = None
    kafka: dict[str, str] = field(default_factory=dict)
    kafka_queue_size: int = DEFAULT_KAFKA_QUEUE_SIZE

    @classmethod
    def from_value(cls, value: Any) -> ConfigGrpc2Kafka:
        data = _mapping(value, "grpc2kafka")
        return cls(
            endpoint=_string(data, "endpoint"),
            x_token=None if data.get("x_token") is None else _string(data, "x_token"),
            request=ConfigGrpcRequest.from_value(_required(data, "request")),
            kafka=_kafka(data),
            kafka_topic=_string(data, "kafka_topic"),
            kafka_queue_size=parse_usize_str(data.get("kafka_queue_size", DEFAULT_KAFKA_QUEUE_SIZE)),
        )


@dataclass
class ConfigKafka2Grpc:
    kafka_topic: str
    listen: SocketAddr
    kafka: dict[str, str] = field(default_factory=dict)
    channel_capacity: int = DEFAULT_CHANNEL_CAPACITY

    @classmethod
    def from_value(cls, value: Any) -> ConfigKafka2Grpc:
        data = _mapping(value, "kafka2grpc")
        capacity = data.get("channel_capacity", DEFAULT_CHANNEL_CAPACITY)
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 0:
            raise ConfigError(f"channel_capacity: expected an unsigned integer, got {capacity!r}")
        return cls(
            kafka=_kafka(data),
            kafka_topic=_string(data, "kafka_topic"),
            listen=parse_socket_addr(_required(data, "listen")),
            channel_capacity=capacity,
        )


@dataclass
class Config:
    prometheus: SocketAddr | None = None
    kafka: dict[str, str] = field(default_factory=dict)
    dedup: ConfigDedup | None = None
    grpc2kafka: ConfigGrpc2Kafka | None = None
    kafka2grpc: ConfigKafka2Grpc | None = None

    @classmethod
    def from_value(cls, value: Any) -> Config:
        data = _mapping(value, "config")
        parsers = {
            "prometheus": parse_socket_addr,
            "dedup": ConfigDedup.from_value,
            "grpc2kafka": ConfigGrpc2Kafka.from_value,
            "kafka2grpc": ConfigKafka2Grpc.from_value,
        }
        optional = {
            key: None if data.get(key) is None else parse(data[key])
            for key, parse in parsers.items()
        }
        return cls(kafka=_kafka(data), **optional)


def load_config(path: str | Path) -> Config:
    """Read and validate a configuration file."""
    return Config.from_value(load(path))