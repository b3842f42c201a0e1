from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from .marshaler import Marshaler

BATCH_READ_CHUNK_SIZE = 100
BATCH_WRITE_CHUNK_SIZE = 25


def chunked[T](items: Sequence[T], size: int) -> list[Sequence[T]]:
    if size <= 0:
        raise ValueError("size must be > 0")
    return [items[i : i + size] for i in range(0, len(items), size)]


@dataclass(frozen=True)
class PutRequest:
    item: Mapping[str, Any]

    def to_request(self, marshaler: Marshaler) -> dict[str, Any]:
        return {"PutRequest": {"Item": marshaler.marshal_item(self.item)}}


@dataclass(frozen=True)
class DeleteRequest:
    key: Mapping[str, Any]

    def to_request(self, marshaler: Marshaler) -> dict[str, Any]:
        return {"DeleteRequest": {"Key": marshaler.marshal_item(self.key)}}


type WriteRequest = PutRequest | DeleteRequest


@dataclass
class BatchGet:
    """Keys of one batch_get_item call, grouped by table."""

    keys: dict[str, list[Mapping[str, Any]]] = field(default_factory=dict)

    def add(self, table: str, key: Mapping[str, Any]) -> BatchGet:
        self.keys.setdefault(table, []).append(key)
        return self

    def add_many(self, table: str, keys: Sequence[Mapping[str, Any]]) -> BatchGet:
        self.keys.setdefault(table, []).extend(keys)
        return self


@dataclass
class BatchWrite:
    """Put/delete requests of one batch_write_item call, grouped by table."""

    requests: dict[str, list[WriteRequest]] = field(default_factory=dict)

    def add(self, table: str, request: WriteRequest) -> BatchWrite:
        if not isinstance(request, (PutRequest, DeleteRequest)):
            raise TypeError("batch write requests must be PutRequest or DeleteRequest")
        self.requests.setdefault(table, []).append(request)
        return self

    def add_many(self, table: str, requests: Sequence[WriteRequest]) -> BatchWrite:
        for request in requests:
            self.add(table, request)
        return self


def plan_batch_get(table: str, keys: Sequence[Mapping[str, Any]]) -> list[BatchGet]:
    return [BatchGet().add_many(table, chunk) for chunk in chunked(list(keys), BATCH_READ_CHUNK_SIZE)]


def plan_batch_write(table: str, requests: Sequence[WriteRequest]) -> list[BatchWrite]:
    return [
        BatchWrite().add_many(table, chunk) for chunk in chunked(list(requests), BATCH_WRITE_CHUNK_SIZE)
    ]


@dataclass(frozen=True)
class BatchWriteResult:
    responses: list[Mapping[str, Any]]
    unprocessed_items: dict[str, list[Mapping[str, Any]]]

    @property
    def has_unprocessed(self) -> bool:
        return any(self.unprocessed_items.values())
