from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError

from .aws_errors import map_transport_error
from .batch import BatchWriteResult, DeleteRequest, PutRequest, plan_batch_get, plan_batch_write
from .errors import UnsupportedOperationError, ValidationError
from .item_collection import ItemCollection
from .pagination import Cursor, CursorPaginator, CursorStorage, decode_cursor
from .query import BuilderState, FetchMode, Fragment, Joiner, RawExpression, ReturnValues
from .state import QueryState

if TYPE_CHECKING:
    from .connection import Connection

logger = logging.getLogger(__name__)


class _UnsetSentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "UNSET"


_UNSET: Any = _UnsetSentinel()

COMPARISON_OPERATORS = frozenset({"=", "<>", "<", "<=", ">", ">="})

# function name -> number of value operands after the attribute path
CONDITION_FUNCTIONS: Mapping[str, int] = {
    "attribute_exists": 0,
    "attribute_not_exists": 0,
    "attribute_type": 1,
    "begins_with": 1,
    "contains": 1,
}


def _prepare_value_and_operator(operator: Any, value: Any) -> tuple[str, Any]:
    if value is _UNSET:
        return "=", operator

    op = str(operator).strip()
    if op == "!=":
        op = "<>"
    if op not in COMPARISON_OPERATORS:
        raise ValidationError(f"unsupported comparison operator: {operator}")
    return op, value


def _is_numeric(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


class Builder:
    """Fluent request builder for a single DynamoDB operation.

    Configuration calls mutate the builder's :class:`QueryState` and register
    attribute names/values as ``#n`` / ``:n`` placeholders. A terminal call
    compiles the state with the connection's grammar, sends it through the
    connection's client and processes the response. A builder runs one
    terminal operation; paginated reads may continue by setting a new
    exclusive start key.
    """

    def __init__(self, connection: Connection) -> None:
        self.connection = connection
        self.grammar = connection.grammar
        self.processor = connection.processor
        self.state = QueryState()
        self._status = BuilderState.CONFIGURING
        self._last_operation: str | None = None

    @property
    def status(self) -> BuilderState:
        return self._status

    def _ensure_configuring(self) -> None:
        if self._status is not BuilderState.CONFIGURING:
            raise ValidationError("builder has already been executed; start a new query")

    def check_key_exists(self) -> None:
        if not self.state.key:
            raise ValidationError("primary key is not set; call key() first")

    # configuration

    def from_(self, table: str) -> Builder:
        self._ensure_configuring()
        if not isinstance(table, str) or not table:
            raise ValidationError("table name must be a non-empty string")
        self.state.table = table
        return self

    def table(self, table: str) -> Builder:
        return self.from_(table)

    def key(self, key: Mapping[str, Any]) -> Builder:
        self._ensure_configuring()
        if not isinstance(key, Mapping):
            raise ValidationError("key must be a mapping of attribute name to value")
        if len(key) not in (1, 2):
            raise ValidationError("key must contain a partition key and an optional sort key")
        self.state.key = dict(key)
        return self

    def index(self, index_name: str | None) -> Builder:
        self._ensure_configuring()
        if index_name is not None and not isinstance(index_name, str):
            raise ValidationError("index name must be a string")
        self.state.index_name = index_name
        return self

    def consistent_read(self, mode: bool = True) -> Builder:
        self._ensure_configuring()
        if not isinstance(mode, bool):
            raise ValidationError("consistent_read expects a boolean")
        self.state.consistent_read = mode
        return self

    def limit(self, value: int) -> Builder:
        self._ensure_configuring()
        try:
            self.state.limit = int(value)
        except (TypeError, ValueError) as err:
            raise ValidationError(f"limit must be an integer: {value!r}") from err
        return self

    def select(self, *columns: str | Sequence[str]) -> Builder:
        self._ensure_configuring()
        names: Sequence[Any] = columns
        if len(columns) == 1 and isinstance(columns[0], (list, tuple)):
            names = columns[0]
        for column in names:
            placeholder = self.state.expression.add_name(str(column))
            if placeholder not in self.state.projection_expression:
                self.state.projection_expression.append(placeholder)
        return self

    def scan_index_backward(self, backward: bool = True) -> Builder:
        self._ensure_configuring()
        self.state.scan_index_forward = not backward
        return self

    def exclusive_start_key(self, key: Mapping[str, Any] | None) -> Builder:
        if self._status is BuilderState.EXECUTED and self._last_operation in {"query", "scan"}:
            self._status = BuilderState.CONFIGURING
        self._ensure_configuring()
        self.state.exclusive_start_key = dict(key) if key else None
        return self

    def after_key(self, key: Mapping[str, Any] | None) -> Builder:
        return self.exclusive_start_key(key)

    def return_values(self, mode: ReturnValues | str) -> Builder:
        self._ensure_configuring()
        self.state.return_values = ReturnValues.parse(mode)
        return self

    def fetch_mode(self, mode: FetchMode | str) -> Builder:
        self._ensure_configuring()
        self.state.fetch_mode = FetchMode.parse(mode)
        return self

    def raw(self, request: Mapping[str, Any] | RawExpression) -> Builder:
        self._ensure_configuring()
        self.state.raw = request if isinstance(request, RawExpression) else RawExpression(dict(request))
        return self

    # conditions, filters, key conditions

    def _comparison(self, column: str, operator: str, value: Any, fmt: str = "{name} {op} {value}") -> str:
        name = self.state.expression.add_name(column)
        placeholder = self.state.expression.add_value(value)
        return fmt.format(name=name, op=operator, value=placeholder)

    def _between(self, column: str, low: Any, high: Any) -> str:
        name = self.state.expression.add_name(column)
        low_ref = self.state.expression.add_value(low)
        high_ref = self.state.expression.add_value(high)
        return f"{name} BETWEEN {low_ref} AND {high_ref}"

    def _begins_with(self, column: str, prefix: Any) -> str:
        name = self.state.expression.add_name(column)
        return f"begins_with({name}, {self.state.expression.add_value(prefix)})"

    def _add_condition(self, expression: str, joiner: Joiner) -> Builder:
        self.state.condition_expressions.append(Fragment(expression, joiner))
        return self

    def _add_filter(self, expression: str, joiner: Joiner) -> Builder:
        self.state.filter_expressions.append(Fragment(expression, joiner))
        return self

    def condition(self, column: str, operator: Any, value: Any = _UNSET) -> Builder:
        self._ensure_configuring()
        op, value = _prepare_value_and_operator(operator, value)
        return self._add_condition(self._comparison(column, op, value), "and")

    def or_condition(self, column: str, operator: Any, value: Any = _UNSET) -> Builder:
        self._ensure_configuring()
        op, value = _prepare_value_and_operator(operator, value)
        return self._add_condition(self._comparison(column, op, value), "or")

    def condition_between(self, column: str, low: Any, high: Any) -> Builder:
        self._ensure_configuring()
        return self._add_condition(self._between(column, low, high), "and")

    def or_condition_between(self, column: str, low: Any, high: Any) -> Builder:
        self._ensure_configuring()
        return self._add_condition(self._between(column, low, high), "or")

    def condition_size(self, column: str, operator: Any, value: Any = _UNSET) -> Builder:
        self._ensure_configuring()
        op, value = _prepare_value_and_operator(operator, value)
        return self._add_condition(self._comparison(column, op, value, "size({name}) {op} {value}"), "and")

    def or_condition_size(self, column: str, operator: Any, value: Any = _UNSET) -> Builder:
        self._ensure_configuring()
        op, value = _prepare_value_and_operator(operator, value)
        return self._add_condition(self._comparison(column, op, value, "size({name}) {op} {value}"), "or")

    def condition_function(self, function: str, path: str, value: Any = None, joiner: Joiner = "and") -> Builder:
        """Add ``function(#path[, :value])`` to the condition expression.

        ``function`` must be one of :data:`CONDITION_FUNCTIONS`.
        """
        self._ensure_configuring()
        arity = CONDITION_FUNCTIONS.get(function)
        if arity is None:
            raise UnsupportedOperationError(f"unsupported condition function: {function}")
        if joiner not in ("and", "or"):
            raise ValidationError(f"unsupported joiner: {joiner}")
        if arity and value is None:
            raise ValidationError(f"{function} requires a value")
        if not arity and value is not None:
            raise ValidationError(f"{function} does not take a value")

        arguments = [self.state.expression.add_name(path)]
        if value is not None:
            arguments.append(self.state.expression.add_value(value))
        return self._add_condition(f"{function}({', '.join(arguments)})", joiner)

    def condition_attribute_exists(self, path: str) -> Builder:
        return self.condition_function("attribute_exists", path)

    def or_condition_attribute_exists(self, path: str) -> Builder:
        return self.condition_function("attribute_exists", path, joiner="or")

    def condition_attribute_not_exists(self, path: str) -> Builder:
        return self.condition_function("attribute_not_exists", path)

    def or_condition_attribute_not_exists(self, path: str) -> Builder:
        return self.condition_function("attribute_not_exists", path, joiner="or")

    def condition_attribute_type(self, path: str, type_: str) -> Builder:
        return self.condition_function("attribute_type", path, type_)

    def or_condition_attribute_type(self, path: str, type_: str) -> Builder:
        return self.condition_function("attribute_type", path, type_, joiner="or")

    def condition_begins_with(self, path: str, prefix: Any) -> Builder:
        return self.condition_function("begins_with", path, prefix)

    def or_condition_begins_with(self, path: str, prefix: Any) -> Builder:
        return self.condition_function("begins_with", path, prefix, joiner="or")

    def condition_contains(self, path: str, operand: Any) -> Builder:
        return self.condition_function("contains", path, operand)

    def or_condition_contains(self, path: str, operand: Any) -> Builder:
        return self.condition_function("contains", path, operand, joiner="or")

    def filter(self, column: str, operator: Any, value: Any = _UNSET) -> Builder:
        self._ensure_configuring()
        op, value = _prepare_value_and_operator(operator, value)
        return self._add_filter(self._comparison(column, op, value), "and")

    def or_filter(self, column: str, operator: Any, value: Any = _UNSET) -> Builder:
        self._ensure_configuring()
        op, value = _prepare_value_and_operator(operator, value)
        return self._add_filter(self._comparison(column, op, value), "or")

    def filter_between(self, column: str, low: Any, high: Any) -> Builder:
        self._ensure_configuring()
        return self._add_filter(self._between(column, low, high), "and")

    def or_filter_between(self, column: str, low: Any, high: Any) -> Builder:
        self._ensure_configuring()
        return self._add_filter(self._between(column, low, high), "or")

    def filter_begins_with(self, column: str, prefix: Any) -> Builder:
        self._ensure_configuring()
        return self._add_filter(self._begins_with(column, prefix), "and")

    def or_filter_begins_with(self, column: str, prefix: Any) -> Builder:
        self._ensure_configuring()
        return self._add_filter(self._begins_with(column, prefix), "or")

    def key_condition(self, column: str, operator: Any, value: Any = _UNSET) -> Builder:
        self._ensure_configuring()
        op, value = _prepare_value_and_operator(operator, value)
        self.state.key_condition_expressions.append(Fragment(self._comparison(column, op, value)))
        return self

    def key_condition_between(self, column: str, low: Any, high: Any) -> Builder:
        self._ensure_configuring()
        self.state.key_condition_expressions.append(Fragment(self._between(column, low, high)))
        return self

    def key_condition_begins_with(self, column: str, prefix: Any) -> Builder:
        self._ensure_configuring()
        self.state.key_condition_expressions.append(Fragment(self._begins_with(column, prefix)))
        return self

    # compilation and execution

    def to_request(self) -> dict[str, Any]:
        return self.grammar.compile_query(self.state)

    def _require_table(self) -> str:
        if self.state.table:
            return self.state.table
        if self.state.raw is not None and "TableName" in self.state.raw.request:
            return str(self.state.raw.request["TableName"])
        raise ValidationError("table is not set; call from_() first")

    def _begin(self, operation: str) -> None:
        self._ensure_configuring()
        self._require_table()
        self._status = BuilderState.COMPILED
        self._last_operation = operation

    def _send(self, operation: str, call: Callable[..., Mapping[str, Any]], request: Mapping[str, Any]) -> Any:
        logger.debug("dynamodb %s table=%s", operation, request.get("TableName", ""))
        try:
            return call(**request)
        except (ClientError, BotoCoreError) as err:
            raise map_transport_error(err) from err
        finally:
            self._status = BuilderState.EXECUTED

    def fetch(self) -> ItemCollection[dict[str, Any]]:
        mode = self.state.fetch_mode
        self._begin(str(mode))
        request = self.grammar.compile_query(self.state)
        client = self.connection.client
        call = client.scan if mode == FetchMode.SCAN else client.query
        return self.processor.process_items(self._send(str(mode), call, request))

    def get(self, columns: Sequence[str] = ()) -> ItemCollection[dict[str, Any]]:
        if columns:
            self.select(list(columns))
        return self.fetch()

    def query(self) -> ItemCollection[dict[str, Any]]:
        return self.fetch_mode(FetchMode.QUERY).fetch()

    def scan(self) -> ItemCollection[dict[str, Any]]:
        return self.fetch_mode(FetchMode.SCAN).fetch()

    def first(self, columns: Sequence[str] = ()) -> dict[str, Any] | None:
        return self.limit(1).get(columns).first()

    def get_item(self) -> dict[str, Any] | None:
        self.check_key_exists()
        self._begin("get_item")
        request = self.grammar.compile_get_item(self.state)
        return self.processor.process_item(self._send("get_item", self.connection.client.get_item, request))

    def find(self, key: Mapping[str, Any], columns: Sequence[str] = ()) -> dict[str, Any] | None:
        self.key(key)
        if columns:
            self.select(list(columns))
        return self.get_item()

    @staticmethod
    def _check_item(item: Any) -> None:
        if not isinstance(item, Mapping) or not item:
            raise ValidationError("item must be a non-empty mapping")

    def put_item(self, item: Mapping[str, Any], *, return_values: ReturnValues | str | None = None) -> dict[str, Any]:
        self._ensure_configuring()
        self._check_item(item)
        if return_values is not None:
            self.return_values(return_values)

        merged = dict(item)
        for column, value in (self.state.key or {}).items():
            merged.setdefault(column, value)
        self.state.item = merged

        self._begin("put_item")
        request = self.grammar.compile_insert(self.state)
        return self.processor.process_affected_operation(
            self._send("put_item", self.connection.client.put_item, request)
        )

    def insert(self, values: Mapping[str, Any], *, return_values: ReturnValues | str | None = None) -> dict[str, Any]:
        """Create-only put: every key column must differ from the stored item."""
        self._ensure_configuring()
        self._check_item(values)
        if return_values is not None:
            self.return_values(return_values)

        for column, value in (self.state.key or {}).items():
            self.condition(column, "<>", value)
        return self.put_item(values)

    def insert_or_replace(
        self, item: Mapping[str, Any], *, return_values: ReturnValues | str | None = None
    ) -> dict[str, Any]:
        return self.put_item(item, return_values=return_values)

    def delete(
        self, key: Mapping[str, Any] | None = None, *, return_values: ReturnValues | str | None = None
    ) -> dict[str, Any]:
        if key is not None:
            self.key(key)
        self.check_key_exists()
        if return_values is not None:
            self.return_values(return_values)

        self._begin("delete_item")
        request = self.grammar.compile_delete(self.state)
        return self.processor.process_affected_operation(
            self._send("delete_item", self.connection.client.delete_item, request)
        )

    def update(
        self, values: Mapping[str, Any], *, return_values: ReturnValues | str | None = None
    ) -> dict[str, Any]:
        """Update the keyed item.

        ``None`` removes an attribute, ``"add:col"`` and ``"delete:col"`` route
        the value into the ADD / DELETE clauses, anything else is SET.
        """
        self._ensure_configuring()
        self.check_key_exists()
        if return_values is not None:
            self.return_values(return_values)

        expression = self.state.expression
        updates = self.state.updates
        for column, value in values.items():
            action, sep, name = column.partition(":")
            if sep and action not in ("add", "delete"):
                raise ValidationError(f"unsupported update action: {action}")

            if value is None:
                if sep:
                    raise ValidationError(f"{action} update requires a value: {name}")
                updates["remove"].append(expression.add_name(column))
                continue

            placeholder = expression.add_value(value)
            if not sep:
                updates["set"].append(f"{expression.add_name(column)} = {placeholder}")
                continue

            updates[action].append(f"{expression.add_name(name)} {placeholder}")

        if not any(updates.values()):
            raise ValidationError("no updates provided")

        self._begin("update_item")
        request = self.grammar.compile_update(self.state)
        return self.processor.process_affected_operation(
            self._send("update_item", self.connection.client.update_item, request)
        )

    def increment(
        self, column: str, amount: int | float | Decimal = 1, extra: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        self._ensure_configuring()
        self.check_key_exists()
        if not _is_numeric(amount):
            raise ValidationError("non-numeric value passed to increment")

        placeholder = self.state.expression.add_value(amount)
        if column.startswith("add:"):
            name = self.state.expression.add_name(column.split(":", 1)[1])
            self.state.updates["add"].append(f"{name} {placeholder}")
        else:
            name = self.state.expression.add_name(column)
            self.state.updates["set"].append(f"{name} = {name} + {placeholder}")

        return self.update(extra or {})

    def decrement(
        self, column: str, amount: int | float | Decimal = 1, extra: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        self._ensure_configuring()
        self.check_key_exists()
        if not _is_numeric(amount):
            raise ValidationError("non-numeric value passed to decrement")

        name = self.state.expression.add_name(column)
        placeholder = self.state.expression.add_value(amount)
        self.state.updates["set"].append(f"{name} = {name} - {placeholder}")

        return self.update(extra or {})

    # batch operations

    def get_item_batch(self, keys: Sequence[Mapping[str, Any]]) -> ItemCollection[dict[str, Any]]:
        table = self._require_table()
        if not keys:
            return ItemCollection()

        self.state.batch_requests = plan_batch_get(table, keys)
        self._begin("batch_get_item")
        requests = self.grammar.compile_batch_get_item(self.state)

        responses: list[Mapping[str, Any]] = []
        for i, request in enumerate(requests, start=1):
            logger.debug("batch_get_item chunk %d/%d", i, len(requests))
            self._status = BuilderState.COMPILED
            responses.append(self._send("batch_get_item", self.connection.client.batch_get_item, request))

        return self.processor.process_batch_get_items(responses, self.grammar.prefixed(table))

    def find_many(self, keys: Sequence[Mapping[str, Any]], columns: Sequence[str] = ()) -> ItemCollection[dict[str, Any]]:
        if columns:
            self.select(list(columns))
        return self.get_item_batch(keys)

    def _write_batch(self, requests: Sequence[PutRequest | DeleteRequest]) -> BatchWriteResult:
        table = self._require_table()
        if not requests:
            return BatchWriteResult(responses=[], unprocessed_items={})

        self.state.batch_requests = plan_batch_write(table, requests)
        self._begin("batch_write_item")
        documents = self.grammar.compile_batch_write_item(self.state)

        responses: list[Mapping[str, Any]] = []
        for i, document in enumerate(documents, start=1):
            logger.debug("batch_write_item chunk %d/%d", i, len(documents))
            self._status = BuilderState.COMPILED
            responses.append(self._send("batch_write_item", self.connection.client.batch_write_item, document))

        return self.processor.process_batch_write_items(responses)

    def put_item_batch(self, items: Sequence[Mapping[str, Any]]) -> BatchWriteResult:
        self._ensure_configuring()
        return self._write_batch([PutRequest(dict(item)) for item in items])

    def delete_item_batch(self, keys: Sequence[Mapping[str, Any]]) -> BatchWriteResult:
        self._ensure_configuring()
        return self._write_batch([DeleteRequest(dict(key)) for key in keys])

    # pagination

    def chunk(self, count: int, callback: Callable[[ItemCollection[dict[str, Any]], int], Any]) -> bool:
        """Walk every page ``count`` items at a time.

        Returns ``False`` when ``callback`` stopped the walk by returning
        ``False``, ``True`` once the last page has been handed over.
        """
        self.limit(count)
        page = 1
        while True:
            results = self.get()
            if callback(results, page) is False:
                return False
            if not results.has_next_items():
                return True
            self.exclusive_start_key(results.last_evaluated_key)
            page += 1

    def cursor_paginate(
        self,
        per_page: int = 15,
        columns: Sequence[str] = (),
        cursor: Cursor | str | None = None,
    ) -> CursorPaginator:
        marshaler = self.grammar.marshaler
        if not isinstance(cursor, Cursor):
            cursor = decode_cursor(cursor, marshaler=marshaler)
        storage = CursorStorage(cursor)

        if columns:
            self.select(list(columns))
        if storage.has_next_cursor():
            self.exclusive_start_key(storage.next_cursor())

        items = self.limit(per_page).fetch()
        return CursorPaginator(items=items, per_page=per_page, cursor=storage.cursor, marshaler=marshaler)
