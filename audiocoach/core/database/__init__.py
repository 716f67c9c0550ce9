"""Cassandra connection for the analytics service."""

from audiocoach.core.database.async_cassandra import (
    AsyncCassandraConnection,
    create_tables,
    init_async_cassandra,
    shutdown_async_cassandra,
)


__all__ = [
    "AsyncCassandraConnection",
    "create_tables",
    "init_async_cassandra",
    "shutdown_async_cassandra",
]
