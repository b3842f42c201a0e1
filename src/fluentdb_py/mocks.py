from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .grammar import referenced_placeholders


class _AnySentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _AnySentinel()

type Matcher = Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None

_COMMON_FIELDS = frozenset({"TableName", "ReturnConsumedCapacity"})
_EXPRESSION_MAPS = frozenset({"ExpressionAttributeNames", "ExpressionAttributeValues"})
_READ_FIELDS = _COMMON_FIELDS | _EXPRESSION_MAPS | {
    "ConsistentRead",
    "ExclusiveStartKey",
    "FilterExpression",
    "IndexName",
    "Limit",
    "ProjectionExpression",
    "Select",
}
_WRITE_FIELDS = _COMMON_FIELDS | _EXPRESSION_MAPS | {
    "ConditionExpression",
    "ReturnItemCollectionMetrics",
    "ReturnValues",
    "ReturnValuesOnConditionCheckFailure",
}

# Request parameters each DynamoDB operation accepts, and the ones it requires.
WIRE_FIELDS: dict[str, frozenset[str]] = {
    "get_item": _COMMON_FIELDS | _EXPRESSION_MAPS | {"Key", "ConsistentRead", "ProjectionExpression"},
    "put_item": _WRITE_FIELDS | {"Item"},
    "update_item": _WRITE_FIELDS | {"Key", "UpdateExpression"},
    "delete_item": _WRITE_FIELDS | {"Key"},
    "query": _READ_FIELDS | {"KeyConditionExpression", "ScanIndexForward"},
    "scan": _READ_FIELDS | {"Segment", "TotalSegments"},
    "batch_get_item": frozenset({"RequestItems", "ReturnConsumedCapacity"}),
    "batch_write_item": frozenset({"RequestItems", "ReturnConsumedCapacity", "ReturnItemCollectionMetrics"}),
}

REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "get_item": ("TableName", "Key"),
    "put_item": ("TableName", "Item"),
    "update_item": ("TableName", "Key"),
    "delete_item": ("TableName", "Key"),
    "query": ("TableName",),
    "scan": ("TableName",),
    "batch_get_item": ("RequestItems",),
    "batch_write_item": ("RequestItems",),
}


def wire_problems(operation: str, request: Mapping[str, Any]) -> list[str]:
    """Reasons DynamoDB would reject ``request`` before looking at any table."""
    allowed = WIRE_FIELDS.get(operation)
    if allowed is None:
        return [f"unknown operation {operation!r}"]

    problems = [f"unknown request field {name!r}" for name in sorted(set(request) - allowed)]
    problems += [f"missing required field {name!r}" for name in REQUIRED_FIELDS[operation] if name not in request]

    referenced = referenced_placeholders(request)
    for name in sorted(_EXPRESSION_MAPS & set(request)):
        entries = request[name]
        if not entries:
            problems.append(f"{name} must not be empty")
            continue
        unused = sorted(set(entries) - referenced)
        if unused:
            problems.append(f"{name} has placeholders no expression uses: {', '.join(unused)}")
    return problems


def diff(expected: Any, actual: Any, path: str = "") -> list[str]:
    """Every place ``actual`` departs from ``expected``.

    Mappings match partially (extra keys in ``actual`` are fine), lists match
    element-wise and ``ANY`` matches anything.
    """
    if expected is ANY:
        return []

    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            return [f"{path}: expected a mapping, got {type(actual).__name__}"]
        out: list[str] = []
        for key, value in expected.items():
            if key not in actual:
                out.append(f"{path}.{key}: absent")
            else:
                out.extend(diff(value, actual[key], f"{path}.{key}"))
        return out

    if isinstance(expected, list):
        if not isinstance(actual, list):
            return [f"{path}: expected a list, got {type(actual).__name__}"]
        if len(expected) != len(actual):
            return [f"{path}: expected {len(expected)} items, got {len(actual)}"]
        out = []
        for i, (e, a) in enumerate(zip(expected, actual, strict=True)):
            out.extend(diff(e, a, f"{path}[{i}]"))
        return out

    if expected != actual:
        return [f"{path}: expected {expected!r}, got {actual!r}"]
    return []


@dataclass(frozen=True)
class RecordedCall:
    operation: str
    request: dict[str, Any]


@dataclass(frozen=True)
class Expectation:
    operation: str
    match: Matcher = None
    response: Mapping[str, Any] = field(default_factory=dict)
    error: Exception | None = None


class FakeDynamoDBClient:
    """Scripted stand-in for a boto3 DynamoDB client.

    Operations must arrive in the order they were ``expect``-ed, and every
    request is checked against the parameters the real operation accepts
    before the scripted matcher runs. Mapping matchers compare partially;
    pass a callable to assert on the whole request.
    """

    def __init__(self) -> None:
        self._pending: list[Expectation] = []
        self.calls: list[RecordedCall] = []

    def expect(
        self,
        operation: str,
        match: Matcher = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> FakeDynamoDBClient:
        if operation not in WIRE_FIELDS:
            raise ValueError(f"unknown operation {operation!r}")
        self._pending.append(Expectation(operation, match, dict(response or {}), error))
        return self

    def requests(self, operation: str) -> list[dict[str, Any]]:
        """Requests received for ``operation``, oldest first."""
        return [call.request for call in self.calls if call.operation == operation]

    def assert_no_pending(self) -> None:
        if self._pending:
            names = ", ".join(e.operation for e in self._pending)
            raise AssertionError(f"{len(self._pending)} expected call(s) never made: {names}")

    def _dispatch(self, operation: str, request: dict[str, Any]) -> Mapping[str, Any]:
        self.calls.append(RecordedCall(operation, dict(request)))
        position = len(self.calls)

        problems = wire_problems(operation, request)
        if problems:
            raise AssertionError(f"{operation} request is not valid DynamoDB input: {'; '.join(problems)}")

        if not self._pending:
            raise AssertionError(f"call #{position}: no call expected, got {operation}")
        expectation = self._pending.pop(0)
        if expectation.operation != operation:
            raise AssertionError(f"call #{position}: expected {expectation.operation}, got {operation}")

        if callable(expectation.match):
            expectation.match(request)
        elif expectation.match is not None:
            mismatches = diff(expectation.match, request, operation)
            if mismatches:
                raise AssertionError("; ".join(mismatches))

        if expectation.error is not None:
            raise expectation.error
        return dict(expectation.response)

    def get_item(self, **request: Any) -> Mapping[str, Any]:
        return self._dispatch("get_item", request)

    def put_item(self, **request: Any) -> Mapping[str, Any]:
        return self._dispatch("put_item", request)

    def update_item(self, **request: Any) -> Mapping[str, Any]:
        return self._dispatch("update_item", request)

    def delete_item(self, **request: Any) -> Mapping[str, Any]:
        return self._dispatch("delete_item", request)

    def query(self, **request: Any) -> Mapping[str, Any]:
        return self._dispatch("query", request)

    def scan(self, **request: Any) -> Mapping[str, Any]:
        return self._dispatch("scan", request)

    def batch_get_item(self, **request: Any) -> Mapping[str, Any]:
        return self._dispatch("batch_get_item", request)

    def batch_write_item(self, **request: Any) -> Mapping[str, Any]:
        return self._dispatch("batch_write_item", request)
