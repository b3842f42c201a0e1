from __future__ import annotations

from collections.abc import Iterator
from dataclasses import replace
from typing import Any

import pytest

from fluentdb_py import runtime
from fluentdb_py.connection import ConnectionConfig
from fluentdb_py.mocks import FakeDynamoDBClient
from fluentdb_py.runtime import (
    create_boto3_config,
    create_dynamodb_client,
    instrument_client,
    is_lambda_environment,
)


def test_is_lambda_environment() -> None:
    assert is_lambda_environment({}) is False
    assert is_lambda_environment({"AWS_LAMBDA_FUNCTION_NAME": "fn"}) is True
    assert is_lambda_environment({"AWS_EXECUTION_ENV": "AWS_Lambda_python3.12"}) is True


def test_create_boto3_config() -> None:
    cfg = create_boto3_config(connect_timeout=2.0, read_timeout=4.0, max_attempts=3)
    assert cfg.connect_timeout == 2.0
    assert cfg.read_timeout == 4.0
    assert cfg.retries["max_attempts"] == 3
    assert cfg.retries["mode"] == "adaptive"


def test_instrument_client_records_calls() -> None:
    metrics: list[Any] = []

    client = FakeDynamoDBClient()
    client.expect("put_item", response={})
    client.expect("get_item", error=RuntimeError("boom"))
    wrapped = instrument_client(client, on_call=metrics.append)

    wrapped.put_item(TableName="t", Item={})
    with pytest.raises(RuntimeError, match="boom"):
        wrapped.get_item(TableName="t", Key={})

    assert [(m.operation, m.ok) for m in metrics] == [("put_item", True), ("get_item", False)]
    assert all(m.seconds >= 0 for m in metrics)
    assert wrapped.calls == client.calls


class _FakeSession:
    def __init__(self) -> None:
        self.created: list[tuple[str, dict[str, Any]]] = []

    def client(self, service_name: str, **kwargs: Any) -> object:
        self.created.append((service_name, kwargs))
        return object()


def test_create_dynamodb_client_passes_connection_settings() -> None:
    sess = _FakeSession()
    cfg = ConnectionConfig(
        region="eu-central-1",
        endpoint_url="http://localhost:8000",
        access_key="dummy",
        secret_key="dummy-secret",
        read_timeout=9.0,
    )

    create_dynamodb_client(cfg, session=sess, environ={})

    ((service, kwargs),) = sess.created
    assert service == "dynamodb"
    assert kwargs["region_name"] == "eu-central-1"
    assert kwargs["endpoint_url"] == "http://localhost:8000"
    assert kwargs["aws_access_key_id"] == "dummy"
    assert kwargs["aws_secret_access_key"] == "dummy-secret"
    assert kwargs["config"].read_timeout == 9.0


def test_explicit_sessions_are_never_cached_in_lambda() -> None:
    sess = _FakeSession()
    env = {"AWS_LAMBDA_FUNCTION_NAME": "fn"}

    c1 = create_dynamodb_client(ConnectionConfig(), session=sess, environ=env)
    c2 = create_dynamodb_client(ConnectionConfig(), session=sess, environ=env)

    assert c1 is not c2
    assert len(sess.created) == 2


@pytest.fixture
def lambda_cache() -> Iterator[None]:
    runtime._reset_lambda_clients_for_tests()
    yield
    runtime._reset_lambda_clients_for_tests()


@pytest.mark.usefixtures("lambda_cache")
def test_lambda_reuses_one_client_per_region_and_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    sessions: list[_FakeSession] = []

    def new_session(**kwargs: Any) -> _FakeSession:
        sessions.append(_FakeSession())
        return sessions[-1]

    monkeypatch.setattr(runtime.boto3.session, "Session", new_session)
    env = {"AWS_LAMBDA_FUNCTION_NAME": "fn"}
    cfg = ConnectionConfig(region="us-east-1")

    first = create_dynamodb_client(cfg, environ=env)
    assert create_dynamodb_client(cfg, environ=env) is first
    assert len(sessions) == 1

    local = create_dynamodb_client(replace(cfg, endpoint_url="http://localhost:8000"), environ=env)
    assert local is not first
    assert create_dynamodb_client(replace(cfg, endpoint_url="http://localhost:8000"), environ=env) is local
    assert len(sessions) == 2

    outside = create_dynamodb_client(cfg, environ={})
    assert outside is not first
    assert create_dynamodb_client(cfg, environ={}) is not outside
    assert len(sessions) == 4
