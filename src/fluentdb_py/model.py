from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import MISSING, dataclass, field, fields, is_dataclass
from decimal import Decimal
from typing import Any, Protocol, cast, get_args, get_origin, get_type_hints, overload

from .errors import ValidationError


class ModelDefinitionError(ValueError):
    pass


class AttributeConverter(Protocol):
    def to_dynamodb(self, value: Any) -> Any: ...

    def from_dynamodb(self, value: Any) -> Any: ...


@dataclass(frozen=True)
class AttributeDefinition:
    python_name: str
    attribute_name: str
    roles: tuple[str, ...]
    omitempty: bool
    json: bool
    converter: AttributeConverter | None = None


def _is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (int, float, Decimal)) and value == 0:
        return True
    if isinstance(value, (str, bytes, bytearray, list, dict, set, tuple)) and len(value) == 0:
        return True
    return False


def _coerce_value(value: Any, annotation: Any) -> Any:
    if value is None:
        return None

    if annotation is int and isinstance(value, (float, Decimal)) and value == int(value):
        return int(value)
    if annotation is float and isinstance(value, (int, Decimal)) and not isinstance(value, bool):
        return float(value)

    origin = get_origin(annotation)
    if origin is set and isinstance(value, set):
        (elem_type,) = get_args(annotation) or (Any,)
        return {_coerce_value(v, elem_type) for v in value}

    return value


@overload
def fluentdb_field(
    *,
    name: str | None = None,
    roles: Sequence[str] | None = None,
    omitempty: bool = False,
    json: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
) -> Any: ...


@overload
def fluentdb_field(
    *,
    name: str | None = None,
    roles: Sequence[str] | None = None,
    omitempty: bool = False,
    json: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
    default: Any,
) -> Any: ...


@overload
def fluentdb_field(
    *,
    name: str | None = None,
    roles: Sequence[str] | None = None,
    omitempty: bool = False,
    json: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
    default_factory: Any,
) -> Any: ...


def fluentdb_field(
    *,
    name: str | None = None,
    roles: Sequence[str] | None = None,
    omitempty: bool = False,
    json: bool = False,
    converter: AttributeConverter | None = None,
    ignore: bool = False,
    default: Any = MISSING,
    default_factory: Any = MISSING,
) -> Any:
    if default is not MISSING and default_factory is not MISSING:
        raise ValueError("fluentdb_field: cannot set both default and default_factory")

    opts: dict[str, Any] = {
        "omitempty": omitempty,
        "json": json,
        "converter": converter,
        "ignore": ignore,
    }
    if name is not None:
        opts["name"] = name
    if roles is not None:
        opts["roles"] = list(roles)

    return field(default=default, default_factory=default_factory, metadata={"fluentdb": opts})


@dataclass(frozen=True)
class ModelDefinition[T]:
    """Maps a dataclass onto a DynamoDB item shape.

    Items handled here are native (already unmarshaled) mappings keyed by
    attribute name; the marshaler deals with the wire format.
    """

    model_type: type[T]
    table_name: str | None
    pk: AttributeDefinition
    sk: AttributeDefinition | None
    attributes: Mapping[str, AttributeDefinition]

    @classmethod
    def from_dataclass(cls, model_type: type[T], *, table_name: str | None = None) -> ModelDefinition[T]:
        if not is_dataclass(model_type):
            raise ModelDefinitionError("model_type must be a dataclass")

        attributes: dict[str, AttributeDefinition] = {}
        pk_fields: list[str] = []
        sk_fields: list[str] = []
        seen_names: set[str] = set()

        for dc_field in fields(model_type):
            opts = cast(dict[str, Any], dc_field.metadata.get("fluentdb", {}))
            if opts.get("ignore", False):
                continue

            roles = tuple(cast(list[str], opts.get("roles", [])))
            for role in roles:
                if role not in ("pk", "sk"):
                    raise ModelDefinitionError(f"unsupported role {role!r} on {dc_field.name}")
            if "pk" in roles:
                pk_fields.append(dc_field.name)
            if "sk" in roles:
                sk_fields.append(dc_field.name)

            attribute_name = cast(str, opts.get("name", dc_field.name))
            if attribute_name in seen_names:
                raise ModelDefinitionError(f"duplicate attribute name: {attribute_name}")
            seen_names.add(attribute_name)

            attributes[dc_field.name] = AttributeDefinition(
                python_name=dc_field.name,
                attribute_name=attribute_name,
                roles=roles,
                omitempty=bool(opts.get("omitempty", False)),
                json=bool(opts.get("json", False)),
                converter=cast(AttributeConverter | None, opts.get("converter")),
            )

        if len(pk_fields) != 1:
            raise ModelDefinitionError(f"model must define exactly one pk field (found {len(pk_fields)})")

        if len(sk_fields) > 1:
            raise ModelDefinitionError(f"model must define at most one sk field (found {len(sk_fields)})")

        return cls(
            model_type=model_type,
            table_name=table_name,
            pk=attributes[pk_fields[0]],
            sk=attributes[sk_fields[0]] if sk_fields else None,
            attributes=attributes,
        )

    def attribute_name(self, name: str) -> str:
        """Resolve a dataclass field name to its attribute name; unknown names pass through."""
        attr_def = self.attributes.get(name)
        return attr_def.attribute_name if attr_def is not None else name

    def to_key(self, pk: Any, sk: Any | None = None) -> dict[str, Any]:
        if pk is None:
            raise ValidationError("pk is required")
        if self.sk is None and sk is not None:
            raise ValidationError("model does not define sk")
        if self.sk is not None and sk is None:
            raise ValidationError("sk is required")

        key: dict[str, Any] = {self.pk.attribute_name: self.serialize_value(self.pk, pk)}
        if self.sk is not None:
            key[self.sk.attribute_name] = self.serialize_value(self.sk, sk)
        return key

    def key_of(self, item: Mapping[str, Any]) -> dict[str, Any]:
        """Extract the primary key from a native item keyed by attribute name."""
        names = [self.pk.attribute_name] + ([self.sk.attribute_name] if self.sk is not None else [])
        key: dict[str, Any] = {}
        for name in names:
            if item.get(name) is None:
                raise ValidationError(f"missing key attribute: {name}")
            key[name] = item[name]
        return key

    def serialize_value(self, attr_def: AttributeDefinition, value: Any) -> Any:
        if value is None:
            return None
        if attr_def.converter is not None:
            value = attr_def.converter.to_dynamodb(value)
        if attr_def.json:
            value = json.dumps(value, separators=(",", ":"), sort_keys=True)
        return value

    def to_item(self, item: T) -> dict[str, Any]:
        if not is_dataclass(item) or isinstance(item, type):
            raise ValidationError("item must be a dataclass instance")

        out: dict[str, Any] = {}
        for field_name, attr_def in self.attributes.items():
            value = getattr(item, field_name)
            if attr_def.omitempty and _is_empty(value):
                continue
            out[attr_def.attribute_name] = self.serialize_value(attr_def, value)

        self.key_of(out)
        return out

    def to_attributes(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Translate a field-name mapping to attribute names, keeping ``add:``/``delete:`` prefixes."""
        out: dict[str, Any] = {}
        for column, value in values.items():
            action, sep, name = column.rpartition(":")
            attr_def = self.attributes.get(name)
            if attr_def is None:
                out[column] = value
                continue
            resolved = f"{action}{sep}{attr_def.attribute_name}"
            out[resolved] = value if value is None or sep else self.serialize_value(attr_def, value)
        return out

    def from_item(self, item: Mapping[str, Any]) -> T:
        model_cls = self.model_type
        try:
            model_annotations = get_type_hints(model_cls)
        except (NameError, TypeError):
            model_annotations = {}

        kwargs: dict[str, Any] = {}
        for dc_field in fields(cast(Any, model_cls)):
            attr_def = self.attributes.get(dc_field.name)
            if attr_def is None or attr_def.attribute_name not in item:
                continue

            raw = item[attr_def.attribute_name]
            if attr_def.json and isinstance(raw, str):
                raw = json.loads(raw)
            if attr_def.converter is not None and raw is not None:
                raw = attr_def.converter.from_dynamodb(raw)

            kwargs[dc_field.name] = _coerce_value(raw, model_annotations.get(dc_field.name, Any))

        try:
            return model_cls(**kwargs)
        except TypeError as err:
            raise ValidationError(str(err)) from err
