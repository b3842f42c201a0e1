from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from typing import Any

from .batch import BatchGet, BatchWrite
from .errors import ValidationError
from .marshaler import Marshaler
from .query import UPDATE_BUCKETS, FetchMode, Fragment
from .state import QueryState

type Request = dict[str, Any]

_PLACEHOLDER = re.compile(r"[#:]\d+")

EXPRESSION_FIELDS: tuple[str, ...] = (
    "KeyConditionExpression",
    "FilterExpression",
    "ConditionExpression",
    "UpdateExpression",
    "ProjectionExpression",
)

QUERY_COMPONENTS: tuple[str, ...] = (
    "from",
    "consistent_read",
    "exclusive_start_key",
    "filter_expressions",
    "index_name",
    "key_condition_expressions",
    "limit",
    "projection_expression",
    "scan_index_forward",
    "expression",
    "raw",
)

SCAN_COMPONENTS: tuple[str, ...] = tuple(
    c for c in QUERY_COMPONENTS if c not in {"key_condition_expressions", "scan_index_forward"}
)

GET_ITEM_COMPONENTS: tuple[str, ...] = (
    "key",
    "from",
    "expression",
    "consistent_read",
    "projection_expression",
)

INSERT_COMPONENTS: tuple[str, ...] = (
    "from",
    "item",
    "condition_expressions",
    "expression",
    "raw",
    "return_values",
)

UPDATE_COMPONENTS: tuple[str, ...] = (
    "from",
    "key",
    "condition_expressions",
    "expression",
    "raw",
    "return_values",
    "updates",
)

DELETE_COMPONENTS: tuple[str, ...] = (
    "from",
    "key",
    "condition_expressions",
    "expression",
    "raw",
    "return_values",
)


def referenced_placeholders(request: Request) -> set[str]:
    return set(_PLACEHOLDER.findall(" ".join(str(request.get(f, "")) for f in EXPRESSION_FIELDS)))


def prune_unused_placeholders(request: Request) -> Request:
    """Drop attribute names/values no expression in ``request`` refers to.

    Scan requests skip key conditions, whose placeholders would otherwise stay
    registered and be rejected by DynamoDB.
    """
    used = referenced_placeholders(request)
    for field in ("ExpressionAttributeNames", "ExpressionAttributeValues"):
        if field not in request:
            continue
        kept = {k: v for k, v in request[field].items() if k in used}
        if kept:
            request[field] = kept
        else:
            del request[field]
    return request


def join_fragments(fragments: Sequence[Fragment]) -> str:
    """Join fragments left to right, each after the first prefixed by its joiner."""
    if not fragments:
        return ""
    out = fragments[0].expression
    for fragment in fragments[1:]:
        out += f" {fragment.joiner} {fragment.expression}"
    return out


class Grammar:
    def __init__(self, *, table_prefix: str = "", marshaler: Marshaler | None = None) -> None:
        self.table_prefix = table_prefix or ""
        self.marshaler = marshaler or Marshaler()
        self._rules: dict[str, Callable[[QueryState, Request], None]] = {
            "from": self._compile_from,
            "key": self._compile_key,
            "item": self._compile_item,
            "consistent_read": self._compile_consistent_read,
            "exclusive_start_key": self._compile_exclusive_start_key,
            "filter_expressions": self._compile_filter_expressions,
            "condition_expressions": self._compile_condition_expressions,
            "key_condition_expressions": self._compile_key_condition_expressions,
            "index_name": self._compile_index_name,
            "limit": self._compile_limit,
            "projection_expression": self._compile_projection_expression,
            "scan_index_forward": self._compile_scan_index_forward,
            "expression": self._compile_expression,
            "raw": self._compile_raw,
            "return_values": self._compile_return_values,
            "updates": self._compile_updates,
        }

    def compile(self, state: QueryState, components: Sequence[str]) -> Request:
        query: Request = {}
        for component in components:
            rule = self._rules.get(component)
            if rule is None:
                raise ValidationError(f"unknown request component: {component}")
            rule(state, query)
        return prune_unused_placeholders(query)

    def compile_query(self, state: QueryState) -> Request:
        components = SCAN_COMPONENTS if state.fetch_mode == FetchMode.SCAN else QUERY_COMPONENTS
        return self.compile(state, components)

    def compile_get_item(self, state: QueryState) -> Request:
        return self.compile(state, GET_ITEM_COMPONENTS)

    def compile_insert(self, state: QueryState) -> Request:
        return self.compile(state, INSERT_COMPONENTS)

    def compile_update(self, state: QueryState) -> Request:
        return self.compile(state, UPDATE_COMPONENTS)

    def compile_delete(self, state: QueryState) -> Request:
        return self.compile(state, DELETE_COMPONENTS)

    def compile_batch_get_item(self, state: QueryState) -> list[Request]:
        out: list[Request] = []
        for batch in state.batch_requests:
            if not isinstance(batch, BatchGet):
                raise ValidationError("batch get expects BatchGet requests")
            request_items: dict[str, Request] = {}
            for table, keys in batch.keys.items():
                entry: Request = {}
                self._compile_expression(state, entry)
                self._compile_projection_expression(state, entry)
                self._compile_consistent_read(state, entry)
                entry["Keys"] = [self.marshaler.marshal_item(key) for key in keys]
                request_items[self.prefixed(table)] = prune_unused_placeholders(entry)
            out.append({"RequestItems": request_items})
        return out

    def compile_batch_write_item(self, state: QueryState) -> list[Request]:
        out: list[Request] = []
        for batch in state.batch_requests:
            if not isinstance(batch, BatchWrite):
                raise ValidationError("batch write expects BatchWrite requests")
            out.append(
                {
                    "RequestItems": {
                        self.prefixed(table): [r.to_request(self.marshaler) for r in requests]
                        for table, requests in batch.requests.items()
                    }
                }
            )
        return out

    def prefixed(self, table: str) -> str:
        return f"{self.table_prefix}{table}"

    def _compile_from(self, state: QueryState, query: Request) -> None:
        if state.table:
            query["TableName"] = self.prefixed(state.table)

    def _compile_key(self, state: QueryState, query: Request) -> None:
        if state.key:
            query["Key"] = self.marshaler.marshal_item(state.key)

    def _compile_item(self, state: QueryState, query: Request) -> None:
        if state.item:
            query["Item"] = self.marshaler.marshal_item(state.item)

    def _compile_consistent_read(self, state: QueryState, query: Request) -> None:
        if state.consistent_read:
            query["ConsistentRead"] = True

    def _compile_exclusive_start_key(self, state: QueryState, query: Request) -> None:
        if state.exclusive_start_key:
            query["ExclusiveStartKey"] = self.marshaler.marshal_item(state.exclusive_start_key)

    def _compile_filter_expressions(self, state: QueryState, query: Request) -> None:
        if state.filter_expressions:
            query["FilterExpression"] = join_fragments(state.filter_expressions)

    def _compile_condition_expressions(self, state: QueryState, query: Request) -> None:
        if state.condition_expressions:
            query["ConditionExpression"] = join_fragments(state.condition_expressions)

    def _compile_key_condition_expressions(self, state: QueryState, query: Request) -> None:
        if state.key_condition_expressions:
            query["KeyConditionExpression"] = join_fragments(state.key_condition_expressions)

    def _compile_index_name(self, state: QueryState, query: Request) -> None:
        if state.index_name:
            query["IndexName"] = state.index_name

    def _compile_limit(self, state: QueryState, query: Request) -> None:
        if state.limit > 0:
            query["Limit"] = state.limit

    def _compile_projection_expression(self, state: QueryState, query: Request) -> None:
        if state.projection_expression:
            query["ProjectionExpression"] = ", ".join(state.projection_expression)

    def _compile_scan_index_forward(self, state: QueryState, query: Request) -> None:
        if state.scan_index_forward is False:
            query["ScanIndexForward"] = False

    def _compile_expression(self, state: QueryState, query: Request) -> None:
        if state.expression.has_names():
            query["ExpressionAttributeNames"] = state.expression.names
        if state.expression.has_values():
            query["ExpressionAttributeValues"] = self.marshaler.marshal_item(state.expression.values)

    def _compile_raw(self, state: QueryState, query: Request) -> None:
        if state.raw is not None:
            query.update(state.raw.to_dict())

    def _compile_return_values(self, state: QueryState, query: Request) -> None:
        if state.return_values is not None:
            query["ReturnValues"] = str(state.return_values)

    def _compile_updates(self, state: QueryState, query: Request) -> None:
        expression = ""
        for bucket in UPDATE_BUCKETS:
            fragments = state.updates.get(bucket) or []
            if not fragments:
                continue
            expression += f"{bucket} {', '.join(fragments)} "
        expression = expression.rstrip()
        if expression:
            query["UpdateExpression"] = expression
