from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, StrEnum
from typing import Any, Literal

from .errors import ValidationError

type Joiner = Literal["and", "or"]


class ReturnValues(StrEnum):
    NONE = "NONE"
    ALL_OLD = "ALL_OLD"
    UPDATED_OLD = "UPDATED_OLD"
    ALL_NEW = "ALL_NEW"
    UPDATED_NEW = "UPDATED_NEW"

    @classmethod
    def parse(cls, value: ReturnValues | str) -> ReturnValues:
        try:
            return cls(str(value).upper())
        except ValueError as err:
            raise ValidationError(f"unsupported return values mode: {value}") from err


class FetchMode(StrEnum):
    QUERY = "query"
    SCAN = "scan"

    @classmethod
    def parse(cls, value: FetchMode | str) -> FetchMode:
        try:
            return cls(str(value).lower())
        except ValueError as err:
            raise ValidationError(f"unsupported fetch mode: {value}") from err


class BuilderState(Enum):
    CONFIGURING = "configuring"
    COMPILED = "compiled"
    EXECUTED = "executed"


@dataclass(frozen=True)
class Fragment:
    expression: str
    joiner: Joiner = "and"


@dataclass(frozen=True)
class RawExpression:
    request: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return dict(self.request)


UPDATE_BUCKETS: tuple[str, ...] = ("set", "remove", "add", "delete")
