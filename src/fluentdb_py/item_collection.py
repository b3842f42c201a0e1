from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ItemCollection[T]:
    """One page of query/scan results.

    ``last_evaluated_key`` (native form) is the only signal that more pages
    exist; ``count`` vs. the requested limit says nothing about it.
    """

    items: list[T] = field(default_factory=list)
    count: int = 0
    scanned_count: int = 0
    metadata: Mapping[str, Any] = field(default_factory=dict)
    last_evaluated_key: dict[str, Any] | None = None
    unprocessed_keys: list[dict[str, Any]] = field(default_factory=list)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index: int) -> T:
        return self.items[index]

    def has_next_items(self) -> bool:
        return self.last_evaluated_key is not None

    def is_empty(self) -> bool:
        return not self.items

    def first(self) -> T | None:
        return self.items[0] if self.items else None

    def transform[U](self, fn: Callable[[T], U]) -> ItemCollection[U]:
        return ItemCollection(
            items=[fn(item) for item in self.items],
            count=self.count,
            scanned_count=self.scanned_count,
            metadata=self.metadata,
            last_evaluated_key=self.last_evaluated_key,
            unprocessed_keys=list(self.unprocessed_keys),
        )
