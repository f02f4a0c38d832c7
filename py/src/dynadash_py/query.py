from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .aws_errors import map_transport_error
from .errors import ValidationError
from .marshalling import DEFAULT_MARSHALLER, Marshaller

logger = logging.getLogger(__name__)

type RawItem = dict[str, Any]
type BatchCallback = Callable[[list[RawItem]], Any]

_CAPACITY_FIELDS = ("CapacityUnits", "ReadCapacityUnits", "WriteCapacityUnits")


def _sum_units(left: Mapping[str, Any], right: Mapping[str, Any]) -> dict[str, Any]:
    return {name: (left.get(name) or 0) + (right.get(name) or 0) for name in _CAPACITY_FIELDS}


def _merge_capacity(left: Mapping[str, Any] | None, right: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not left or not right:
        out = left or right
        return dict(out) if out else None
    return _sum_units(left, right)


def _merge_index_capacities(
    left: Mapping[str, Mapping[str, Any]] | None,
    right: Mapping[str, Mapping[str, Any]] | None,
) -> dict[str, Any] | None:
    if not left or not right:
        out = left or right
        return {k: dict(v) for k, v in out.items()} if out else None

    merged: dict[str, Any] = {k: dict(v) for k, v in left.items()}
    for index_name, capacity in right.items():
        combined = _merge_capacity(merged.get(index_name), capacity)
        if combined is not None:
            merged[index_name] = combined
    return merged


def merge_consumed_capacity(
    left: Mapping[str, Any] | None,
    right: Mapping[str, Any] | None,
) -> dict[str, Any] | None:
    if not left or not right:
        out = left or right
        return dict(out) if out else None

    merged: dict[str, Any] = dict(left)
    merged.update(_sum_units(left, right))

    table = _merge_capacity(left.get("Table"), right.get("Table"))
    if table is not None:
        merged["Table"] = table
    for key in ("LocalSecondaryIndexes", "GlobalSecondaryIndexes"):
        indexes = _merge_index_capacities(left.get(key), right.get(key))
        if indexes is not None:
            merged[key] = indexes
    return merged


@dataclass
class QueryResult:
    items: list[RawItem] = field(default_factory=list)
    count: int = 0
    scanned_count: int = 0
    consumed_capacity: dict[str, Any] | None = None
    last_evaluated_key: dict[str, Any] | None = None
    pages: int = 0
    marshaller: Marshaller = field(default=DEFAULT_MARSHALLER, repr=False)

    def to_plain[P](self, transform: Callable[[dict[str, Any]], P] | None = None) -> list[Any]:
        return [self.marshaller.project(item, transform) for item in self.items]


def merge_capacity_stats(stats: QueryResult, page: Mapping[str, Any]) -> None:
    stats.count += int(page.get("Count") or 0)
    stats.scanned_count += int(page.get("ScannedCount") or 0)
    stats.consumed_capacity = merge_consumed_capacity(stats.consumed_capacity, page.get("ConsumedCapacity"))


def run_query(
    client: Any,
    request: Mapping[str, Any],
    *,
    batch_callback: BatchCallback | None = None,
    marshaller: Marshaller = DEFAULT_MARSHALLER,
) -> QueryResult:
    """Run a Query to completion, following ``LastEvaluatedKey`` page by page.

    Pagination stops at the last page, after the first page when the caller
    supplied its own ``ExclusiveStartKey``, or once ``Limit`` records were
    gathered. With ``batch_callback`` each page's raw items go to the
    callback instead of being kept in memory.
    """
    limit = request.get("Limit")
    if limit is not None and int(limit) <= 0:
        raise ValidationError("Limit must be > 0")
    follow_cursor = "ExclusiveStartKey" not in request

    req: dict[str, Any] = dict(request)
    result = QueryResult(marshaller=marshaller)
    seen = 0

    while True:
        try:
            resp = client.query(**req)
        except Exception as err:
            logger.error("query failed on page %d: %s; request=%r", result.pages + 1, err, req)
            mapped = map_transport_error(err, operation="query")
            if mapped is err:
                raise
            raise mapped from err

        result.pages += 1
        page_items = list(resp.get("Items") or [])
        seen += len(page_items)
        if batch_callback is not None:
            batch_callback(page_items)
        else:
            result.items.extend(page_items)
        merge_capacity_stats(result, resp)

        last = resp.get("LastEvaluatedKey") or None
        result.last_evaluated_key = last
        logger.debug("query page %d returned %d items", result.pages, len(page_items))

        if not last or not follow_cursor:
            break
        if limit is not None and seen >= int(limit):
            break
        req["ExclusiveStartKey"] = last

    return result
