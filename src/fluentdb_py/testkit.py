from __future__ import annotations

from .connection import Connection, ConnectionConfig
from .mocks import ANY, FakeDynamoDBClient, RecordedCall


def fake_connection(
    client: FakeDynamoDBClient | None = None,
    *,
    table_prefix: str = "",
) -> tuple[Connection, FakeDynamoDBClient]:
    """A connection wired to a scripted fake client, never touching AWS."""
    fake = client or FakeDynamoDBClient()
    return Connection(ConnectionConfig(table_prefix=table_prefix), client=fake), fake


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "RecordedCall",
    "fake_connection",
]
