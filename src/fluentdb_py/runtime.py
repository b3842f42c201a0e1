from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, cast

import boto3
from botocore.config import Config

if TYPE_CHECKING:
    from .connection import ConnectionConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AwsCallMetric:
    service: str
    operation: str
    seconds: float
    ok: bool


def is_lambda_environment(environ: Mapping[str, str] = os.environ) -> bool:
    return bool(
        environ.get("AWS_LAMBDA_FUNCTION_NAME") or "AWS_Lambda" in (environ.get("AWS_EXECUTION_ENV") or "")
    )


def create_boto3_config(
    *,
    connect_timeout: float = 1.0,
    read_timeout: float = 3.0,
    max_attempts: int = 3,
) -> Config:
    return Config(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        retries={"max_attempts": max_attempts, "mode": "adaptive"},
    )


class _InstrumentedClient:
    def __init__(self, client: Any, service: str, on_call: Callable[[AwsCallMetric], None]) -> None:
        self._client = client
        self._service = service
        self._on_call = on_call

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self._client, name)
        if name.startswith("_") or not callable(attr):
            return attr

        def wrapped(*args: Any, **kwargs: Any) -> Any:
            start = time.monotonic()
            ok = False
            try:
                out = attr(*args, **kwargs)
                ok = True
                return out
            finally:
                self._on_call(
                    AwsCallMetric(
                        service=self._service,
                        operation=name,
                        seconds=time.monotonic() - start,
                        ok=ok,
                    )
                )

        return wrapped


def instrument_client(
    client: Any,
    *,
    on_call: Callable[[AwsCallMetric], None],
    service: str = "dynamodb",
) -> Any:
    return _InstrumentedClient(client, service, on_call)


_lambda_clients: dict[tuple[str | None, str | None, str | None], Any] = {}


def create_dynamodb_client(
    config: ConnectionConfig,
    *,
    session: Any | None = None,
    environ: Mapping[str, str] = os.environ,
) -> Any:
    """Build a boto3 DynamoDB client for ``config``.

    Inside AWS Lambda the client is cached per region/endpoint/access key so
    warm invocations reuse connections.
    """
    cache_key = (config.region, config.endpoint_url, config.access_key)
    in_lambda = is_lambda_environment(environ)
    if in_lambda and session is None:
        existing = _lambda_clients.get(cache_key)
        if existing is not None:
            return existing

    sess = session or boto3.session.Session(region_name=config.region)
    client = cast(Any, sess).client(
        "dynamodb",
        region_name=config.region,
        endpoint_url=config.endpoint_url,
        aws_access_key_id=config.access_key,
        aws_secret_access_key=config.secret_key,
        config=create_boto3_config(
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            max_attempts=config.max_attempts,
        ),
    )
    logger.debug("created dynamodb client region=%s endpoint=%s", config.region, config.endpoint_url)

    if in_lambda and session is None:
        _lambda_clients[cache_key] = client
    return client


def _reset_lambda_clients_for_tests() -> None:
    _lambda_clients.clear()
