from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer


def _to_wire_native(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, bytearray):
        return bytes(value)
    if isinstance(value, Mapping):
        return {str(k): _to_wire_native(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_wire_native(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return {_to_wire_native(v) for v in value}
    return value


class Marshaler:
    """Converts native values to DynamoDB attribute values and back.

    Numbers travel as strings (``{"N": "18"}``). On the way back, integral
    numbers become ``int`` and the rest ``float`` unless ``decimal_numbers`` is
    set, in which case ``Decimal`` is kept.
    """

    def __init__(self, *, decimal_numbers: bool = False) -> None:
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()
        self._decimal_numbers = decimal_numbers

    def marshal(self, value: Any) -> dict[str, Any]:
        return self._serializer.serialize(_to_wire_native(value))

    def unmarshal(self, av: Mapping[str, Any]) -> Any:
        if not isinstance(av, Mapping) or len(av) != 1:
            raise TypeError(f"attribute value must be a single-key map, got {av!r}")
        return self._to_native(self._deserializer.deserialize(dict(av)))

    def marshal_item(self, item: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
        if not isinstance(item, Mapping):
            raise TypeError(f"item must be a mapping, got {type(item).__name__}")
        return {str(k): self.marshal(v) for k, v in item.items()}

    def unmarshal_item(self, item: Mapping[str, Any]) -> dict[str, Any]:
        if not isinstance(item, Mapping):
            raise TypeError(f"item must be a mapping, got {type(item).__name__}")
        return {str(k): self.unmarshal(v) for k, v in item.items()}

    def unmarshal_key(self, key: Mapping[str, Any]) -> dict[str, Any]:
        """Unmarshal a primary or continuation key.

        Numbers stay ``Decimal`` so the key marshals back to the exact attribute
        values DynamoDB returned.
        """
        if not isinstance(key, Mapping):
            raise TypeError(f"key must be a mapping, got {type(key).__name__}")
        return {
            str(k): self._to_native(self._deserializer.deserialize(dict(v)), exact=True) for k, v in key.items()
        }

    def _to_native(self, value: Any, *, exact: bool = False) -> Any:
        if isinstance(value, Decimal):
            if exact or self._decimal_numbers:
                return value
            if value == value.to_integral_value():
                return int(value)
            return float(value)
        if isinstance(value, Binary):
            return bytes(value.value)
        if isinstance(value, dict):
            return {k: self._to_native(v, exact=exact) for k, v in value.items()}
        if isinstance(value, list):
            return [self._to_native(v, exact=exact) for v in value]
        if isinstance(value, set):
            return {self._to_native(v, exact=exact) for v in value}
        return value
