from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any

from .errors import ValidationError
from .item_collection import ItemCollection
from .marshaler import Marshaler


@dataclass(frozen=True)
class Cursor:
    """Position in a forward/backward walk over continuation keys."""

    previous: tuple[dict[str, Any], ...] = ()
    next: dict[str, Any] | None = None


class CursorStorage:
    def __init__(self, cursor: Cursor | None = None) -> None:
        self._cursor = cursor or Cursor()

    @property
    def cursor(self) -> Cursor:
        return self._cursor

    def next_cursor(self) -> dict[str, Any] | None:
        return self._cursor.next

    def has_next_cursor(self) -> bool:
        return bool(self._cursor.next)

    def is_first_page(self) -> bool:
        return not self._cursor.previous and not self._cursor.next

    def next_cursor_object(self, last_key: dict[str, Any] | None) -> Cursor:
        previous = list(self._cursor.previous)
        if self._cursor.next:
            previous.append(self._cursor.next)
        return Cursor(previous=tuple(previous), next=last_key)

    def previous_cursor_object(self) -> Cursor:
        previous = list(self._cursor.previous)
        next_key = previous.pop() if previous else None
        return Cursor(previous=tuple(previous), next=next_key)


def _ensure_single_key_map(value: Any) -> tuple[str, Any]:
    if not isinstance(value, dict) or len(value) != 1:
        raise ValueError("attribute value must be a single-key map")
    (key, inner), *_ = value.items()
    return str(key), inner


def _av_to_json(av: Any) -> dict[str, Any]:
    kind, value = _ensure_single_key_map(av)

    if kind == "B":
        return {"B": base64.b64encode(bytes(value)).decode("ascii")}
    if kind == "BS":
        return {"BS": [base64.b64encode(bytes(v)).decode("ascii") for v in value]}
    if kind == "L":
        return {"L": [_av_to_json(v) for v in value]}
    if kind == "M":
        return {"M": {str(k): _av_to_json(value[k]) for k in sorted(value.keys())}}
    if kind in {"S", "N", "BOOL", "NULL", "SS", "NS"}:
        return {kind: value}

    raise ValueError(f"unsupported attribute value type: {kind}")


def _av_from_json(enc: Any) -> dict[str, Any]:
    kind, value = _ensure_single_key_map(enc)

    if kind in {"S", "N"}:
        if not isinstance(value, str):
            raise ValueError(f"{kind} value must be a string")
        return {kind: value}
    if kind == "B":
        if not isinstance(value, str):
            raise ValueError("B value must be a base64 string")
        return {"B": base64.b64decode(value)}
    if kind == "BOOL":
        if not isinstance(value, bool):
            raise ValueError("BOOL value must be a boolean")
        return {"BOOL": value}
    if kind == "NULL":
        if value is not True:
            raise ValueError("NULL value must be true")
        return {"NULL": True}
    if kind in {"SS", "NS"}:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValueError(f"{kind} value must be a list of strings")
        return {kind: value}
    if kind == "BS":
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValueError("BS value must be a list of base64 strings")
        return {"BS": [base64.b64decode(v) for v in value]}
    if kind == "L":
        if not isinstance(value, list):
            raise ValueError("L value must be a list")
        return {"L": [_av_from_json(v) for v in value]}
    if kind == "M":
        if not isinstance(value, dict):
            raise ValueError("M value must be a map")
        return {"M": {str(k): _av_from_json(value[k]) for k in sorted(value.keys())}}

    raise ValueError(f"unsupported attribute value type: {kind}")


def _key_to_json(key: dict[str, Any], marshaler: Marshaler) -> dict[str, Any]:
    marshaled = marshaler.marshal_item(key)
    return {k: _av_to_json(marshaled[k]) for k in sorted(marshaled.keys())}


def _key_from_json(raw: Any, marshaler: Marshaler) -> dict[str, Any]:
    if not isinstance(raw, dict) or not raw:
        raise ValueError("cursor key must be a non-empty map")
    return marshaler.unmarshal_key({str(k): _av_from_json(v) for k, v in raw.items()})


def encode_cursor(cursor: Cursor, *, marshaler: Marshaler | None = None) -> str:
    """Encode a cursor as an opaque URL-safe token. An empty cursor encodes to ``""``."""
    if not cursor.previous and not cursor.next:
        return ""

    marshaler = marshaler or Marshaler()
    payload = {
        "p": [_key_to_json(key, marshaler) for key in cursor.previous],
        "n": _key_to_json(cursor.next, marshaler) if cursor.next else None,
    }
    data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def decode_cursor(token: str | None, *, marshaler: Marshaler | None = None) -> Cursor:
    raw = str(token or "").strip()
    if not raw:
        return Cursor()

    marshaler = marshaler or Marshaler()
    try:
        padding = "=" * (-len(raw) % 4)
        parsed = json.loads(base64.urlsafe_b64decode(raw + padding).decode("utf-8"))
        if not isinstance(parsed, dict):
            raise ValueError("cursor must decode to an object")

        previous_raw = parsed.get("p") or []
        if not isinstance(previous_raw, list):
            raise ValueError("cursor previous keys must be a list")
        next_raw = parsed.get("n")

        return Cursor(
            previous=tuple(_key_from_json(k, marshaler) for k in previous_raw),
            next=_key_from_json(next_raw, marshaler) if next_raw else None,
        )
    except (ValueError, TypeError, binascii.Error, UnicodeDecodeError) as err:
        raise ValidationError("invalid cursor") from err


@dataclass
class CursorPaginator:
    items: ItemCollection[Any]
    per_page: int
    cursor: Cursor = field(default_factory=Cursor)
    marshaler: Marshaler = field(default_factory=Marshaler, repr=False)

    def has_pages(self) -> bool:
        return not self.items.is_empty()

    def has_more_pages(self) -> bool:
        return self.items.has_next_items()

    def on_first_page(self) -> bool:
        return CursorStorage(self.cursor).is_first_page()

    def next_cursor(self) -> Cursor | None:
        if not self.has_more_pages():
            return None
        return CursorStorage(self.cursor).next_cursor_object(self.items.last_evaluated_key)

    def previous_cursor(self) -> Cursor | None:
        if self.on_first_page():
            return None
        return CursorStorage(self.cursor).previous_cursor_object()

    def next_token(self) -> str | None:
        cursor = self.next_cursor()
        return encode_cursor(cursor, marshaler=self.marshaler) if cursor is not None else None

    def previous_token(self) -> str | None:
        cursor = self.previous_cursor()
        return encode_cursor(cursor, marshaler=self.marshaler) if cursor is not None else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": list(self.items.items),
            "per_page": self.per_page,
            "next_cursor": self.next_token(),
            "prev_cursor": self.previous_token(),
        }
