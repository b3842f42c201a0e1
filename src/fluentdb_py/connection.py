from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from .builder import Builder
from .errors import ValidationError
from .grammar import Grammar
from .marshaler import Marshaler
from .processor import Processor
from .runtime import AwsCallMetric, create_dynamodb_client, instrument_client

DEFAULT_REGION = "us-east-1"


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as err:
        raise ValidationError(f"{name} must be a number: {raw!r}") from err


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as err:
        raise ValidationError(f"{name} must be an integer: {raw!r}") from err


@dataclass(frozen=True)
class ConnectionConfig:
    region: str = DEFAULT_REGION
    endpoint_url: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    table_prefix: str = ""
    connect_timeout: float = 1.0
    read_timeout: float = 3.0
    max_attempts: int = 3

    def __post_init__(self) -> None:
        if not self.region:
            raise ValidationError("region is required")
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ValidationError("timeouts must be > 0")
        if self.max_attempts < 1:
            raise ValidationError("max_attempts must be >= 1")
        if (self.access_key is None) != (self.secret_key is None):
            raise ValidationError("access_key and secret_key must be set together")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> ConnectionConfig:
        return cls(
            region=environ.get("FLUENTDB_REGION") or environ.get("AWS_REGION") or DEFAULT_REGION,
            endpoint_url=environ.get("FLUENTDB_ENDPOINT") or None,
            access_key=environ.get("AWS_ACCESS_KEY_ID") or None,
            secret_key=environ.get("AWS_SECRET_ACCESS_KEY") or None,
            table_prefix=environ.get("FLUENTDB_TABLE_PREFIX") or "",
            connect_timeout=_env_float(environ, "FLUENTDB_CONNECT_TIMEOUT", 1.0),
            read_timeout=_env_float(environ, "FLUENTDB_READ_TIMEOUT", 3.0),
            max_attempts=_env_int(environ, "FLUENTDB_MAX_ATTEMPTS", 3),
        )


class Connection:
    """A DynamoDB client paired with the grammar and processor builders share."""

    def __init__(
        self,
        config: ConnectionConfig | None = None,
        *,
        client: Any | None = None,
        table_prefix: str | None = None,
        marshaler: Marshaler | None = None,
        on_call: Callable[[AwsCallMetric], None] | None = None,
    ) -> None:
        self.config = config or ConnectionConfig()
        self.marshaler = marshaler or Marshaler()

        prefix = self.config.table_prefix if table_prefix is None else table_prefix
        self.grammar = Grammar(table_prefix=prefix, marshaler=self.marshaler)
        self.processor = Processor(marshaler=self.marshaler)

        resolved = client if client is not None else create_dynamodb_client(self.config)
        if on_call is not None:
            resolved = instrument_client(resolved, on_call=on_call)
        self.client = resolved

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ, **kwargs: Any) -> Connection:
        return cls(ConnectionConfig.from_env(environ), **kwargs)

    @property
    def table_prefix(self) -> str:
        return self.grammar.table_prefix

    def query(self) -> Builder:
        return Builder(self)

    def table(self, name: str) -> Builder:
        return Builder(self).from_(name)

    def from_(self, name: str) -> Builder:
        return self.table(name)
