"""Cassandra session for the analytics service (cassandra-asyncio-driver).

The driver's ``Cluster`` hands out sessions exposing ``session.aexecute()``,
so queries are awaited on the event loop instead of blocking it. Connecting
itself is synchronous and happens once at startup.
"""

from collections.abc import Iterable

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from audiocoach.analytics.models import ANALYTICS_TABLES_CQL
from audiocoach.catalog.models import CATALOG_TABLES_CQL
from audiocoach.config.settings import get_settings


logger = structlog.get_logger(__name__)


class AsyncCassandraConnection:
    """Process-wide cluster and session holder."""

    _cluster: Cluster | None = None
    _session = None

    @classmethod
    def connect(cls):
        """Connect to the cluster, reusing the session if already connected.

        Raises:
            ConnectionError: If no contact point answers
        """
        if cls._session is not None:
            return cls._session

        settings = get_settings()

        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
            connect_timeout=settings.cassandra_connect_timeout,
        )

        try:
            cls._session = cls._cluster.connect()
        except Exception as e:
            logger.error(
                "cassandra_connection_failed",
                hosts=settings.cassandra_hosts,
                error=str(e),
            )
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        logger.info(
            "cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
        )
        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        """Shut down session and cluster."""
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("cassandra_disconnected")

    @classmethod
    def is_connected(cls) -> bool:
        """Whether a live session exists."""
        return cls._session is not None and not cls._session.is_shutdown


async def create_keyspace(session, keyspace: str) -> None:
    """Create the keyspace if missing.

    Production spreads replicas over a datacenter; everything else runs on
    a single node.
    """
    if get_settings().is_production:
        replication = "'class': 'NetworkTopologyStrategy', 'datacenter1': 3"
    else:
        replication = "'class': 'SimpleStrategy', 'replication_factor': 1"

    await session.aexecute(f"""
        CREATE KEYSPACE IF NOT EXISTS {keyspace}
        WITH replication = {{{replication}}}
        AND durable_writes = true
    """)


async def create_tables(session, keyspace: str, tables: Iterable[str]) -> int:
    """Run ``CREATE TABLE IF NOT EXISTS`` templates against ``keyspace``.

    Returns:
        Number of statements executed
    """
    count = 0
    for cql_template in tables:
        await session.aexecute(cql_template.format(keyspace=keyspace))
        count += 1
    return count


async def init_async_cassandra():
    """Connect and make sure keyspace and tables exist.

    Returns:
        Session with aexecute() support, bound to the configured keyspace
    """
    keyspace = get_settings().cassandra_keyspace

    session = AsyncCassandraConnection.connect()
    await create_keyspace(session, keyspace)
    session.set_keyspace(keyspace)

    catalog_tables = await create_tables(session, keyspace, CATALOG_TABLES_CQL)
    analytics_tables = await create_tables(session, keyspace, ANALYTICS_TABLES_CQL)

    logger.info(
        "cassandra_schema_ready",
        keyspace=keyspace,
        tables=catalog_tables + analytics_tables,
    )
    return session


async def shutdown_async_cassandra() -> None:
    """Close the Cassandra connection."""
    AsyncCassandraConnection.disconnect()
