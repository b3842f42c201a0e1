from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import is_dataclass
from typing import TYPE_CHECKING, Any

from .builder import _UNSET, Builder
from .errors import NotFoundError, ValidationError
from .item_collection import ItemCollection
from .model import ModelDefinition
from .query import ReturnValues

if TYPE_CHECKING:
    from .connection import Connection


class ModelQuery[T]:
    """Builder facade that speaks dataclass field names and returns model instances.

    Field names are translated to attribute names through the model
    definition before reaching the underlying :class:`Builder`, and items
    coming back are hydrated into ``T``. Like the builder it wraps, a
    ``ModelQuery`` runs a single terminal operation.
    """

    def __init__(
        self,
        model: ModelDefinition[T],
        connection: Connection,
        *,
        table_name: str | None = None,
    ) -> None:
        table = table_name or model.table_name
        if not table:
            raise ValidationError("table_name is required")
        self.model = model
        self.builder: Builder = connection.table(table)

    def _name(self, field_name: str) -> str:
        return self.model.attribute_name(field_name)

    def key(self, pk: Any, sk: Any | None = None) -> ModelQuery[T]:
        self.builder.key(self.model.to_key(pk, sk))
        return self

    def index(self, index_name: str | None) -> ModelQuery[T]:
        self.builder.index(index_name)
        return self

    def limit(self, value: int) -> ModelQuery[T]:
        self.builder.limit(value)
        return self

    def consistent_read(self, mode: bool = True) -> ModelQuery[T]:
        self.builder.consistent_read(mode)
        return self

    def scan_index_backward(self, backward: bool = True) -> ModelQuery[T]:
        self.builder.scan_index_backward(backward)
        return self

    def key_condition(self, field_name: str, operator: Any, value: Any = _UNSET) -> ModelQuery[T]:
        self.builder.key_condition(self._name(field_name), operator, value)
        return self

    def key_condition_begins_with(self, field_name: str, prefix: Any) -> ModelQuery[T]:
        self.builder.key_condition_begins_with(self._name(field_name), prefix)
        return self

    def filter(self, field_name: str, operator: Any, value: Any = _UNSET) -> ModelQuery[T]:
        self.builder.filter(self._name(field_name), operator, value)
        return self

    def or_filter(self, field_name: str, operator: Any, value: Any = _UNSET) -> ModelQuery[T]:
        self.builder.or_filter(self._name(field_name), operator, value)
        return self

    def condition(self, field_name: str, operator: Any, value: Any = _UNSET) -> ModelQuery[T]:
        self.builder.condition(self._name(field_name), operator, value)
        return self

    def find(self, pk: Any, sk: Any | None = None, columns: Sequence[str] = ()) -> T | None:
        item = self.builder.find(self.model.to_key(pk, sk), [self._name(c) for c in columns])
        return self.model.from_item(item) if item is not None else None

    def find_or_fail(self, pk: Any, sk: Any | None = None, columns: Sequence[str] = ()) -> T:
        found = self.find(pk, sk, columns)
        if found is None:
            raise NotFoundError(f"{self.model.model_type.__name__} not found")
        return found

    def query(self) -> ItemCollection[T]:
        return self.builder.query().transform(self.model.from_item)

    def scan(self) -> ItemCollection[T]:
        return self.builder.scan().transform(self.model.from_item)

    def first(self) -> T | None:
        item = self.builder.first()
        return self.model.from_item(item) if item is not None else None

    def insert(self, item: T | Mapping[str, Any]) -> T:
        """Create ``item``; fails with ``ConditionFailedError`` when the key already exists."""
        if is_dataclass(item) and not isinstance(item, type):
            values = self.model.to_item(item)
        elif isinstance(item, Mapping):
            values = self.model.to_attributes(item)
        else:
            raise ValidationError("item must be a dataclass instance or a mapping")

        self.builder.key(self.model.key_of(values))
        self.builder.insert(values)
        return self.model.from_item(values)

    def update(self, values: Mapping[str, Any]) -> T | None:
        """Apply ``values`` to the keyed item and return its new state."""
        response = self.builder.update(self.model.to_attributes(values), return_values=ReturnValues.ALL_NEW)
        attributes = response.get("Attributes")
        return self.model.from_item(attributes) if attributes else None

    def delete(self) -> T | None:
        response = self.builder.delete(return_values=ReturnValues.ALL_OLD)
        attributes = response.get("Attributes")
        return self.model.from_item(attributes) if attributes else None
