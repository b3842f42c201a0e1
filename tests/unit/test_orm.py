from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from fluentdb_py import ModelDefinition, ModelQuery, fluentdb_field
from fluentdb_py.errors import NotFoundError, ValidationError
from fluentdb_py.testkit import fake_connection


@dataclass(frozen=True)
class User:
    id: str = fluentdb_field(roles=["pk"])
    created: str = fluentdb_field(roles=["sk"], name="created_at")
    age: int = fluentdb_field(default=0)
    tags: list[str] = fluentdb_field(default_factory=list, omitempty=True)


MODEL = ModelDefinition.from_dataclass(User, table_name="users")


def test_find_hydrates_model() -> None:
    conn, client = fake_connection()
    client.expect(
        "get_item",
        {"TableName": "users", "Key": {"id": {"S": "u1"}, "created_at": {"S": "2024"}}},
        response={"Item": {"id": {"S": "u1"}, "created_at": {"S": "2024"}, "age": {"N": "30"}}},
    )

    user = ModelQuery(MODEL, conn).find("u1", "2024")

    assert user == User(id="u1", created="2024", age=30)


def test_find_or_fail_raises_not_found() -> None:
    conn, client = fake_connection()
    client.expect("get_item", response={})

    with pytest.raises(NotFoundError, match="User not found"):
        ModelQuery(MODEL, conn).find_or_fail("u1", "2024")


def test_key_requires_sort_key() -> None:
    conn, _ = fake_connection()

    with pytest.raises(ValidationError, match="sk is required"):
        ModelQuery(MODEL, conn).key("u1")


def test_table_name_is_required() -> None:
    conn, _ = fake_connection()

    with pytest.raises(ValidationError, match="table_name is required"):
        ModelQuery(ModelDefinition.from_dataclass(User), conn)


def test_query_translates_field_names_and_hydrates_items() -> None:
    conn, client = fake_connection()
    client.expect(
        "query",
        {
            "KeyConditionExpression": "#1 = :1 and begins_with(#2, :2)",
            "FilterExpression": "#3 > :3",
            "ExpressionAttributeNames": {"#1": "id", "#2": "created_at", "#3": "age"},
        },
        response={"Items": [{"id": {"S": "u1"}, "created_at": {"S": "2024-01"}, "age": {"N": "31"}}], "Count": 1},
    )

    result = (
        ModelQuery(MODEL, conn)
        .key_condition("id", "u1")
        .key_condition_begins_with("created", "2024")
        .filter("age", ">", 18)
        .query()
    )

    assert result.items == [User(id="u1", created="2024-01", age=31)]
    assert result.count == 1


def test_scan_and_first() -> None:
    conn, client = fake_connection()
    client.expect("scan", response={"Items": [{"id": {"S": "a"}, "created_at": {"S": "1"}}]})
    client.expect("query", {"Limit": 1}, response={"Items": []})

    assert ModelQuery(MODEL, conn).scan().first() == User(id="a", created="1")
    assert ModelQuery(MODEL, conn).key_condition("id", "b").first() is None


def test_insert_is_create_only_and_omits_empty_fields() -> None:
    conn, client = fake_connection()

    def validate(req: Any) -> None:
        assert req["Item"] == {"id": {"S": "u1"}, "created_at": {"S": "2024"}, "age": {"N": "0"}}
        assert req["ConditionExpression"] == "#1 <> :1 and #2 <> :2"
        assert req["ExpressionAttributeNames"] == {"#1": "id", "#2": "created_at"}

    client.expect("put_item", validate)

    created = ModelQuery(MODEL, conn).insert(User(id="u1", created="2024"))

    assert created == User(id="u1", created="2024")
    client.assert_no_pending()


def test_insert_accepts_field_name_mappings() -> None:
    conn, client = fake_connection()
    client.expect("put_item", {"Item": {"id": {"S": "u2"}, "created_at": {"S": "2025"}, "age": {"N": "5"}}})

    created = ModelQuery(MODEL, conn).insert({"id": "u2", "created": "2025", "age": 5})

    assert created == User(id="u2", created="2025", age=5)


def test_update_returns_new_state() -> None:
    conn, client = fake_connection()
    client.expect(
        "update_item",
        {
            "Key": {"id": {"S": "u1"}, "created_at": {"S": "2024"}},
            "UpdateExpression": "add #1 :1",
            "ExpressionAttributeNames": {"#1": "age"},
            "ReturnValues": "ALL_NEW",
        },
        response={"Attributes": {"id": {"S": "u1"}, "created_at": {"S": "2024"}, "age": {"N": "31"}}},
    )

    updated = ModelQuery(MODEL, conn).key("u1", "2024").update({"add:age": 1})

    assert updated == User(id="u1", created="2024", age=31)


def test_delete_returns_old_state() -> None:
    conn, client = fake_connection()
    client.expect(
        "delete_item",
        {"ReturnValues": "ALL_OLD"},
        response={"Attributes": {"id": {"S": "u1"}, "created_at": {"S": "2024"}, "tags": {"L": [{"S": "x"}]}}},
    )

    deleted = ModelQuery(MODEL, conn).key("u1", "2024").delete()

    assert deleted == User(id="u1", created="2024", tags=["x"])


@dataclass(frozen=True)
class Counter:
    name: str = fluentdb_field(roles=["pk"])
    hits: int = field(default=0)


def test_models_without_sort_key() -> None:
    conn, client = fake_connection()
    client.expect("get_item", {"Key": {"name": {"S": "home"}}}, response={"Item": {"name": {"S": "home"}}})

    model = ModelDefinition.from_dataclass(Counter, table_name="counters")

    assert ModelQuery(model, conn).find("home") == Counter(name="home")
    with pytest.raises(ValidationError, match="model does not define sk"):
        ModelQuery(model, conn).key("home", "x")
