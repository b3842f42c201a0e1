from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from .batch import BatchWriteResult
from .item_collection import ItemCollection
from .marshaler import Marshaler

logger = logging.getLogger(__name__)


class Processor:
    """Maps DynamoDB responses back into native values."""

    def __init__(self, *, marshaler: Marshaler | None = None) -> None:
        self.marshaler = marshaler or Marshaler()

    def process_items(self, response: Mapping[str, Any]) -> ItemCollection[dict[str, Any]]:
        items = [self.marshaler.unmarshal_item(item) for item in response.get("Items") or []]
        last = response.get("LastEvaluatedKey")
        return ItemCollection(
            items=items,
            count=int(response.get("Count", len(items))),
            scanned_count=int(response.get("ScannedCount", 0)),
            metadata=dict(response.get("ResponseMetadata") or {}),
            last_evaluated_key=self.marshaler.unmarshal_key(last) if last else None,
        )

    def process_item(self, response: Mapping[str, Any]) -> dict[str, Any] | None:
        item = response.get("Item")
        if not item:
            return None
        return self.marshaler.unmarshal_item(item)

    def process_affected_operation(self, response: Mapping[str, Any]) -> dict[str, Any]:
        data = dict(response)
        if data.get("Attributes"):
            data["Attributes"] = self.marshaler.unmarshal_item(data["Attributes"])
        return data

    def process_batch_get_items(
        self, responses: Sequence[Mapping[str, Any]], table: str
    ) -> ItemCollection[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        unprocessed: list[dict[str, Any]] = []
        for response in responses:
            for item in (response.get("Responses") or {}).get(table, []):
                items.append(self.marshaler.unmarshal_item(item))
            for key in (response.get("UnprocessedKeys") or {}).get(table, {}).get("Keys") or []:
                unprocessed.append(self.marshaler.unmarshal_key(key))

        if unprocessed:
            logger.warning("batch_get_item left %d unprocessed keys on %s", len(unprocessed), table)

        return ItemCollection(items=items, count=len(items), unprocessed_keys=unprocessed)

    def process_batch_write_items(self, responses: Sequence[Mapping[str, Any]]) -> BatchWriteResult:
        unprocessed: dict[str, list[Mapping[str, Any]]] = {}
        for response in responses:
            for table, requests in (response.get("UnprocessedItems") or {}).items():
                if requests:
                    unprocessed.setdefault(table, []).extend(requests)

        for table, requests in unprocessed.items():
            logger.warning("batch_write_item left %d unprocessed requests on %s", len(requests), table)

        return BatchWriteResult(responses=[dict(r) for r in responses], unprocessed_items=unprocessed)
