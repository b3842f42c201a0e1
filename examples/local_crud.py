from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass

from fluentdb_py import Connection, ConnectionConfig, ModelDefinition, ModelQuery, fluentdb_field


@dataclass(frozen=True)
class Note:
    pk: str = fluentdb_field(roles=["pk"])
    sk: str = fluentdb_field(roles=["sk"])
    value: int = fluentdb_field()


def _connection() -> Connection:
    env = dict(os.environ)
    env.setdefault("FLUENTDB_ENDPOINT", "http://localhost:8000")
    env.setdefault("AWS_ACCESS_KEY_ID", "dummy")
    env.setdefault("AWS_SECRET_ACCESS_KEY", "dummy")
    return Connection(ConnectionConfig.from_env(env))


def main() -> None:
    logging.basicConfig(level=logging.DEBUG if os.environ.get("DEBUG") else logging.INFO)

    conn = _connection()
    table_name = f"fluentdb_py_example_{uuid.uuid4().hex[:12]}"
    physical_name = f"{conn.table_prefix}{table_name}"

    conn.client.create_table(
        TableName=physical_name,
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    conn.client.get_waiter("table_exists").wait(TableName=physical_name)

    try:
        model = ModelDefinition.from_dataclass(Note, table_name=table_name)

        ModelQuery(model, conn).insert(Note(pk="A", sk="001", value=1))
        conn.table(table_name).put_item_batch(
            [{"pk": "A", "sk": "010", "value": 10}, {"pk": "A", "sk": "100", "value": 100}]
        )

        print("find:", ModelQuery(model, conn).find("A", "010"))

        page = ModelQuery(model, conn).key_condition("pk", "A").key_condition_begins_with("sk", "0").query()
        print("query begins_with('0'):", page.items)

        conn.table(table_name).key({"pk": "A", "sk": "001"}).increment("value", 5)

        paginator = conn.table(table_name).key_condition("pk", "A").cursor_paginate(per_page=2)
        print("page 1:", paginator.to_dict())
        if paginator.has_more_pages():
            nxt = conn.table(table_name).key_condition("pk", "A").cursor_paginate(
                per_page=2, cursor=paginator.next_token()
            )
            print("page 2:", nxt.to_dict())
    finally:
        conn.client.delete_table(TableName=physical_name)


if __name__ == "__main__":
    main()
