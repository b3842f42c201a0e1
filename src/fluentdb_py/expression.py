from __future__ import annotations

from collections.abc import Iterator
from typing import Any


class _PlaceholderSequence:
    def __init__(self, prefix: str, start: int = 1) -> None:
        self._prefix = prefix
        self._counter = start

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        key = f"{self._prefix}{self._counter}"
        self._counter += 1
        return key


def _same_value(left: Any, right: Any) -> bool:
    if type(left) is not type(right):
        return False
    if isinstance(left, (list, tuple)):
        return len(left) == len(right) and all(_same_value(a, b) for a, b in zip(left, right, strict=True))
    if isinstance(left, dict):
        return left.keys() == right.keys() and all(_same_value(v, right[k]) for k, v in left.items())
    return bool(left == right)


class ExpressionRegistry:
    """Deduplicating store of expression attribute names and values.

    Names are keyed ``#1, #2, ...`` and values ``:1, :2, ...`` in first-seen
    order. Registering an already known name (or a value of the same type that
    compares equal) returns the placeholder it was first given.
    """

    def __init__(self) -> None:
        self._name_keys = _PlaceholderSequence("#")
        self._value_keys = _PlaceholderSequence(":")
        self._names: dict[str, str] = {}
        self._values: dict[str, Any] = {}

    def add_name(self, name: str) -> str:
        for placeholder, existing in self._names.items():
            if existing == name:
                return placeholder

        placeholder = next(self._name_keys)
        self._names[placeholder] = name
        return placeholder

    def add_value(self, value: Any) -> str:
        for placeholder, existing in self._values.items():
            if _same_value(existing, value):
                return placeholder

        placeholder = next(self._value_keys)
        self._values[placeholder] = value
        return placeholder

    def has_names(self) -> bool:
        return bool(self._names)

    def has_values(self) -> bool:
        return bool(self._values)

    @property
    def names(self) -> dict[str, str]:
        return dict(self._names)

    @property
    def values(self) -> dict[str, Any]:
        return dict(self._values)
