from __future__ import annotations

import pytest

from fluentdb_py.errors import UnsupportedOperationError, ValidationError
from fluentdb_py.testkit import fake_connection


def test_bare_table_compiles_to_table_name_only() -> None:
    conn, _ = fake_connection()

    assert conn.table("Users").to_request() == {"TableName": "Users"}


def test_table_prefix_is_prepended() -> None:
    conn, _ = fake_connection(table_prefix="Staging-")

    assert conn.table("Users").to_request() == {"TableName": "Staging-Users"}


def test_key_conditions_join_with_and() -> None:
    conn, _ = fake_connection()

    req = conn.table("Users").key_condition("id", "1").key_condition_begins_with("name", "Ali").to_request()

    assert req == {
        "TableName": "Users",
        "KeyConditionExpression": "#1 = :1 and begins_with(#2, :2)",
        "ExpressionAttributeNames": {"#1": "id", "#2": "name"},
        "ExpressionAttributeValues": {":1": {"S": "1"}, ":2": {"S": "Ali"}},
    }


def test_filters_join_left_to_right_with_their_joiners() -> None:
    conn, _ = fake_connection()

    req = (
        conn.table("Users")
        .key_condition("id", "1")
        .filter("name", "Alice")
        .or_filter("name", "Bob")
        .to_request()
    )

    assert req["FilterExpression"] == "#2 = :2 or #2 = :3"
    assert req["ExpressionAttributeNames"] == {"#1": "id", "#2": "name"}
    assert req["ExpressionAttributeValues"] == {":1": {"S": "1"}, ":2": {"S": "Alice"}, ":3": {"S": "Bob"}}


def test_comparison_operators_and_between() -> None:
    conn, _ = fake_connection()

    req = (
        conn.table("Users")
        .filter("age", ">=", 18)
        .filter("status", "!=", "banned")
        .or_filter_between("score", 1, 10)
        .to_request()
    )

    assert req["FilterExpression"] == "#1 >= :1 and #2 <> :2 or #3 BETWEEN :3 AND :4"
    assert req["ExpressionAttributeValues"][":1"] == {"N": "18"}


def test_unknown_comparison_operator_is_rejected() -> None:
    conn, _ = fake_connection()

    with pytest.raises(ValidationError, match="unsupported comparison operator"):
        conn.table("Users").filter("name", "like", "A%")


def test_optional_fields_only_appear_when_set() -> None:
    conn, _ = fake_connection()

    plain = conn.table("Users").limit(0).to_request()
    assert "Limit" not in plain
    assert "ConsistentRead" not in plain
    assert "ScanIndexForward" not in plain
    assert "IndexName" not in plain

    full = (
        conn.table("Users")
        .index("by_email")
        .limit(5)
        .consistent_read()
        .scan_index_backward()
        .exclusive_start_key({"id": "9"})
        .to_request()
    )
    assert full["IndexName"] == "by_email"
    assert full["Limit"] == 5
    assert full["ConsistentRead"] is True
    assert full["ScanIndexForward"] is False
    assert full["ExclusiveStartKey"] == {"id": {"S": "9"}}


def test_scan_mode_omits_key_conditions_and_sort_direction() -> None:
    conn, _ = fake_connection()

    req = (
        conn.table("Users")
        .fetch_mode("scan")
        .key_condition("id", "1")
        .scan_index_backward()
        .filter("age", ">", 18)
        .to_request()
    )

    assert "KeyConditionExpression" not in req
    assert "ScanIndexForward" not in req
    assert req["FilterExpression"] == "#2 > :2"
    assert req["ExpressionAttributeNames"] == {"#2": "age"}
    assert req["ExpressionAttributeValues"] == {":2": {"N": "18"}}


def test_scan_mode_drops_attribute_maps_left_empty() -> None:
    conn, _ = fake_connection()

    req = conn.table("Users").fetch_mode("scan").key_condition("id", "1").to_request()

    assert req == {"TableName": "Users"}


def test_select_registers_projection_placeholders_once() -> None:
    conn, _ = fake_connection()

    req = conn.table("Users").select("id", "name").select(["id"]).to_request()

    assert req["ProjectionExpression"] == "#1, #2"
    assert req["ExpressionAttributeNames"] == {"#1": "id", "#2": "name"}


def test_raw_request_is_merged_last() -> None:
    conn, _ = fake_connection()

    req = conn.table("Users").limit(10).raw({"Limit": 3, "Select": "COUNT"}).to_request()
    assert req["Limit"] == 3
    assert req["Select"] == "COUNT"

    assert conn.query().raw({"TableName": "Other"}).to_request() == {"TableName": "Other"}


def test_condition_functions_reuse_value_placeholders() -> None:
    conn, client = fake_connection()
    client.expect(
        "delete_item",
        {
            "TableName": "Users",
            "Key": {"id": {"S": "1"}},
            "ConditionExpression": "attribute_type(#1, :1) or attribute_type(#2, :1) and attribute_type(#3, :1)",
            "ExpressionAttributeNames": {"#1": "a", "#2": "b", "#3": "c"},
            "ExpressionAttributeValues": {":1": {"S": "S"}},
        },
    )

    (
        conn.table("Users")
        .key({"id": "1"})
        .condition_attribute_type("a", "S")
        .or_condition_attribute_type("b", "S")
        .condition_attribute_type("c", "S")
        .delete()
    )

    client.assert_no_pending()


def test_size_conditions() -> None:
    conn, client = fake_connection()
    client.expect(
        "delete_item",
        {"ConditionExpression": "size(#1) = :1 or size(#2) > :2 and size(#3) = :3"},
    )

    (
        conn.table("Users")
        .key({"id": "1"})
        .condition_size("a", 1)
        .or_condition_size("b", ">", 2)
        .condition_size("c", 3)
        .delete()
    )

    client.assert_no_pending()


def test_path_only_condition_functions() -> None:
    conn, client = fake_connection()
    client.expect(
        "delete_item",
        {
            "ConditionExpression": (
                "attribute_exists(#1) and attribute_not_exists(#2) or begins_with(#3, :1) or contains(#4, :2)"
            ),
        },
    )

    (
        conn.table("Users")
        .key({"id": "1"})
        .condition_attribute_exists("a")
        .condition_attribute_not_exists("b")
        .or_condition_begins_with("c", "pre")
        .or_condition_contains("d", "x")
        .delete()
    )

    client.assert_no_pending()


def test_condition_function_validation() -> None:
    conn, _ = fake_connection()
    builder = conn.table("Users")

    with pytest.raises(UnsupportedOperationError, match="unsupported condition function: size"):
        builder.condition_function("size", "a")
    with pytest.raises(ValidationError, match="requires a value"):
        builder.condition_function("contains", "a")
    with pytest.raises(ValidationError, match="does not take a value"):
        builder.condition_function("attribute_exists", "a", "x")


def test_configuration_validation() -> None:
    conn, _ = fake_connection()
    builder = conn.table("Users")

    with pytest.raises(ValidationError, match="limit must be an integer"):
        builder.limit("many")  # type: ignore[arg-type]
    with pytest.raises(ValidationError, match="consistent_read expects a boolean"):
        builder.consistent_read("yes")  # type: ignore[arg-type]
    with pytest.raises(ValidationError, match="partition key"):
        builder.key({})
    with pytest.raises(ValidationError, match="unsupported return values mode"):
        builder.return_values("EVERYTHING")
    with pytest.raises(ValidationError, match="unsupported fetch mode"):
        builder.fetch_mode("sideways")
    with pytest.raises(ValidationError, match="table name"):
        builder.from_("")
