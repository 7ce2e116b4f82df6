"""Kafka bridge configuration, message deduplication and client metrics."""