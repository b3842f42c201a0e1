from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .batch import BatchWriteResult, DeleteRequest, PutRequest
from .builder import Builder
from .connection import Connection, ConnectionConfig
from .errors import (
    ConditionFailedError,
    FluentdbPyError,
    NotFoundError,
    TransportError,
    UnsupportedOperationError,
    ValidationError,
)
from .expression import ExpressionRegistry
from .grammar import Grammar
from .item_collection import ItemCollection
from .marshaler import Marshaler
from .model import AttributeConverter, ModelDefinition, ModelDefinitionError, fluentdb_field
from .pagination import Cursor, CursorPaginator, decode_cursor, encode_cursor
from .processor import Processor
from .query import FetchMode, ReturnValues

if TYPE_CHECKING:
    from .orm import ModelQuery
    from .runtime import AwsCallMetric, create_boto3_config, instrument_client, is_lambda_environment


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name == "ModelQuery":
        from .orm import ModelQuery

        return ModelQuery
    if name in {"AwsCallMetric", "create_boto3_config", "instrument_client", "is_lambda_environment"}:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(name)


__all__ = [
    "AttributeConverter",
    "AwsCallMetric",
    "BatchWriteResult",
    "Builder",
    "ConditionFailedError",
    "Connection",
    "ConnectionConfig",
    "Cursor",
    "CursorPaginator",
    "DeleteRequest",
    "ExpressionRegistry",
    "FetchMode",
    "FluentdbPyError",
    "Grammar",
    "ItemCollection",
    "Marshaler",
    "ModelDefinition",
    "ModelDefinitionError",
    "ModelQuery",
    "NotFoundError",
    "Processor",
    "PutRequest",
    "ReturnValues",
    "TransportError",
    "UnsupportedOperationError",
    "ValidationError",
    "__repo_version__",
    "__version__",
    "create_boto3_config",
    "decode_cursor",
    "encode_cursor",
    "fluentdb_field",
    "instrument_client",
    "is_lambda_environment",
]
