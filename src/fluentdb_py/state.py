from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .batch import BatchGet, BatchWrite
from .expression import ExpressionRegistry
from .query import UPDATE_BUCKETS, FetchMode, Fragment, RawExpression, ReturnValues


def _empty_updates() -> dict[str, list[str]]:
    return {bucket: [] for bucket in UPDATE_BUCKETS}


@dataclass
class QueryState:
    table: str | None = None
    key: dict[str, Any] | None = None
    index_name: str | None = None
    consistent_read: bool = False
    limit: int = 0
    scan_index_forward: bool | None = None
    item: dict[str, Any] | None = None
    condition_expressions: list[Fragment] = field(default_factory=list)
    filter_expressions: list[Fragment] = field(default_factory=list)
    key_condition_expressions: list[Fragment] = field(default_factory=list)
    projection_expression: list[str] = field(default_factory=list)
    updates: dict[str, list[str]] = field(default_factory=_empty_updates)
    exclusive_start_key: dict[str, Any] | None = None
    return_values: ReturnValues | None = None
    fetch_mode: FetchMode = FetchMode.QUERY
    raw: RawExpression | None = None
    expression: ExpressionRegistry = field(default_factory=ExpressionRegistry)
    batch_requests: list[BatchGet] | list[BatchWrite] = field(default_factory=list)
