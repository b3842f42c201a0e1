from __future__ import annotations

import logging
from typing import Any

import pytest
from botocore.exceptions import ClientError

from fluentdb_py.errors import TransportError
from fluentdb_py.testkit import fake_connection


def test_get_item_batch_shapes_request_and_collects_items() -> None:
    conn, client = fake_connection()

    def validate(req: Any) -> None:
        assert req == {"RequestItems": {"users": {"Keys": [{"id": {"S": "1"}}, {"id": {"S": "2"}}]}}}

    client.expect(
        "batch_get_item",
        validate,
        response={"Responses": {"users": [{"id": {"S": "1"}, "age": {"N": "3"}}]}},
    )

    result = conn.table("users").get_item_batch([{"id": "1"}, {"id": "2"}])

    assert result.items == [{"id": "1", "age": 3}]
    assert result.unprocessed_keys == []
    client.assert_no_pending()


def test_get_item_batch_surfaces_unprocessed_keys(caplog: pytest.LogCaptureFixture) -> None:
    conn, client = fake_connection(table_prefix="Staging-")
    client.expect(
        "batch_get_item",
        {"RequestItems": {"Staging-users": {"Keys": [{"id": {"S": "1"}}, {"id": {"S": "2"}}]}}},
        response={
            "Responses": {"Staging-users": [{"id": {"S": "1"}}]},
            "UnprocessedKeys": {"Staging-users": {"Keys": [{"id": {"S": "2"}}]}},
        },
    )

    with caplog.at_level(logging.WARNING, logger="fluentdb_py.processor"):
        result = conn.table("users").get_item_batch([{"id": "1"}, {"id": "2"}])

    assert result.items == [{"id": "1"}]
    assert result.unprocessed_keys == [{"id": "2"}]
    assert "1 unprocessed keys on Staging-users" in caplog.text


def test_get_item_batch_chunks_at_one_hundred_keys() -> None:
    conn, client = fake_connection()
    sizes: list[int] = []

    def record(req: Any) -> None:
        sizes.append(len(req["RequestItems"]["users"]["Keys"]))

    client.expect("batch_get_item", record, response={"Responses": {"users": []}})
    client.expect("batch_get_item", record, response={"Responses": {"users": []}})

    conn.table("users").get_item_batch([{"id": str(i)} for i in range(101)])

    assert sizes == [100, 1]
    client.assert_no_pending()


def test_find_many_projects_columns_per_table() -> None:
    conn, client = fake_connection()
    client.expect(
        "batch_get_item",
        {
            "RequestItems": {
                "users": {
                    "ExpressionAttributeNames": {"#1": "name"},
                    "ProjectionExpression": "#1",
                    "ConsistentRead": True,
                    "Keys": [{"id": {"S": "1"}}],
                }
            }
        },
        response={"Responses": {"users": [{"name": {"S": "A"}}]}},
    )

    result = conn.table("users").consistent_read().find_many([{"id": "1"}], ["name"])

    assert result.first() == {"name": "A"}


def test_empty_batches_do_not_call_the_client() -> None:
    conn, client = fake_connection()

    assert conn.table("users").get_item_batch([]).is_empty()
    assert conn.table("users").put_item_batch([]).has_unprocessed is False
    assert client.calls == []


def test_put_item_batch_chunks_at_twenty_five_requests() -> None:
    conn, client = fake_connection()
    sizes: list[int] = []
    ids: list[str] = []

    def record(req: Any) -> None:
        requests = req["RequestItems"]["users"]
        sizes.append(len(requests))
        assert all(set(r) == {"PutRequest"} for r in requests)
        ids.extend(r["PutRequest"]["Item"]["id"]["S"] for r in requests)

    client.expect("batch_write_item", record, response={"UnprocessedItems": {}})
    client.expect("batch_write_item", record, response={"UnprocessedItems": {}})

    result = conn.table("users").put_item_batch([{"id": str(i), "n": i} for i in range(30)])

    assert sizes == [25, 5]
    assert ids == [str(i) for i in range(30)]
    assert result.has_unprocessed is False
    assert len(result.responses) == 2


def test_put_item_batch_stops_at_the_first_failed_chunk() -> None:
    conn, client = fake_connection()
    client.expect(
        "batch_write_item",
        error=ClientError(
            {"Error": {"Code": "ProvisionedThroughputExceededException", "Message": "slow down"}},
            "BatchWriteItem",
        ),
    )

    with pytest.raises(TransportError) as excinfo:
        conn.table("users").put_item_batch([{"id": str(i)} for i in range(30)])

    assert excinfo.value.code == "ProvisionedThroughputExceededException"
    assert len(client.calls) == 1
    assert len(client.requests("batch_write_item")[0]["RequestItems"]["users"]) == 25
    client.assert_no_pending()


def test_put_item_batch_request_shape() -> None:
    conn, client = fake_connection()

    def validate(req: Any) -> None:
        assert req == {"RequestItems": {"users": [{"PutRequest": {"Item": {"id": {"S": "1"}, "age": {"N": "18"}}}}]}}

    client.expect("batch_write_item", validate)

    conn.table("users").put_item_batch([{"id": "1", "age": 18}])
    client.assert_no_pending()


def test_delete_item_batch_surfaces_unprocessed_items(caplog: pytest.LogCaptureFixture) -> None:
    conn, client = fake_connection()
    leftover = {"DeleteRequest": {"Key": {"id": {"S": "2"}}}}
    client.expect(
        "batch_write_item",
        {
            "RequestItems": {
                "users": [
                    {"DeleteRequest": {"Key": {"id": {"S": "1"}}}},
                    {"DeleteRequest": {"Key": {"id": {"S": "2"}}}},
                ]
            }
        },
        response={"UnprocessedItems": {"users": [leftover]}},
    )

    with caplog.at_level(logging.WARNING, logger="fluentdb_py.processor"):
        result = conn.table("users").delete_item_batch([{"id": "1"}, {"id": "2"}])

    assert result.has_unprocessed is True
    assert result.unprocessed_items == {"users": [leftover]}
    assert "1 unprocessed requests on users" in caplog.text
