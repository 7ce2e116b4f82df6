"""Geyser gRPC and Kafka bridge: configuration, request building, deduplication and metrics."""

__version__ = "4.0.0"