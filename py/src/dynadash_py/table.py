from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from .aws_errors import map_transport_error
from .batch import BATCH_WRITE_RETRY_THRESHOLD, BatchWriteResult, Transform, batch_write
from .conditions import ConditionList, get_condition_expression
from .errors import ValidationError
from .expressions import ExpressionMap, build_query_request, clean_attribute_name
from .marshalling import DEFAULT_MARSHALLER, Marshaller
from .query import BatchCallback, QueryResult, run_query
from .runtime import ClientSettings, create_dynamodb_client

logger = logging.getLogger(__name__)

type ReturnValues = Literal["NONE", "ALL_OLD", "UPDATED_OLD", "ALL_NEW", "UPDATED_NEW"]

RETURN_VALUES: frozenset[str] = frozenset({"NONE", "ALL_OLD", "UPDATED_OLD", "ALL_NEW", "UPDATED_NEW"})


@dataclass
class ItemResult:
    """Raw response of a single-item call plus lazy projection of its record."""

    response: Mapping[str, Any]
    item: dict[str, Any] | None = None
    marshaller: Marshaller = field(default=DEFAULT_MARSHALLER, repr=False)

    def to_plain[P](self, transform: Callable[[dict[str, Any]], P] | None = None) -> Any:
        if not self.item:
            return None
        return self.marshaller.project(self.item, transform)


def _check_return_values(value: str) -> str:
    if value not in RETURN_VALUES:
        raise ValidationError(f"unsupported ReturnValues: {value}")
    return value


def build_put_request(
    table_name: str,
    record: Mapping[str, Any],
    *,
    conditions: ConditionList | None = None,
    marshaller: Marshaller = DEFAULT_MARSHALLER,
    **params: Any,
) -> dict[str, Any]:
    if not table_name:
        raise ValidationError("table_name is required")

    req: dict[str, Any] = {"TableName": table_name, "Item": marshaller.marshall(record)}
    req.update(params)
    if conditions:
        built = get_condition_expression(record, conditions)
        if built.condition_expression is not None:
            req["ConditionExpression"] = built.condition_expression
        if built.names:
            req["ExpressionAttributeNames"] = built.names
        if built.condition_values:
            req["ExpressionAttributeValues"] = marshaller.marshall_values(built.condition_values)
    return req


class Table:
    def __init__(
        self,
        table_name: str,
        *,
        client: Any | None = None,
        settings: ClientSettings | None = None,
        marshaller: Marshaller | None = None,
        max_batch_retries: int = BATCH_WRITE_RETRY_THRESHOLD,
        sleep: Callable[[float], None] | None = time.sleep,
    ) -> None:
        if not table_name:
            raise ValueError("table_name is required")

        self._table_name = table_name
        self._client: Any = client or create_dynamodb_client(settings)
        self._marshaller = marshaller or DEFAULT_MARSHALLER
        self._max_batch_retries = max_batch_retries
        self._sleep = sleep

    @property
    def table_name(self) -> str:
        return self._table_name

    def _call(self, operation: str, req: dict[str, Any]) -> Mapping[str, Any]:
        try:
            return getattr(self._client, operation)(**req)
        except Exception as err:
            logger.error("%s failed on table %s: %s; request=%r", operation, self._table_name, err, req)
            mapped = map_transport_error(err, operation=operation)
            if mapped is err:
                raise
            raise mapped from err

    def get(
        self,
        key: Mapping[str, Any],
        *,
        projection: Sequence[str] | None = None,
        consistent_read: bool = False,
        **params: Any,
    ) -> ItemResult:
        req: dict[str, Any] = {
            "TableName": self._table_name,
            "Key": self._marshaller.marshall(key),
            **params,
        }
        if consistent_read:
            req["ConsistentRead"] = True
        if projection:
            names = dict(req.get("ExpressionAttributeNames") or {})
            refs: list[str] = []
            for attr in projection:
                ref = f"#p_{clean_attribute_name(attr)}"
                existing = names.get(ref)
                if existing is not None and existing != attr:
                    raise ValidationError(f"expression attribute name collision: {ref}")
                names[ref] = attr
                refs.append(ref)
            req["ProjectionExpression"] = ", ".join(refs)
            req["ExpressionAttributeNames"] = names

        resp = self._call("get_item", req)
        return ItemResult(response=resp, item=resp.get("Item"), marshaller=self._marshaller)

    def put(
        self,
        record: Mapping[str, Any],
        *,
        conditions: ConditionList | None = None,
        **params: Any,
    ) -> Mapping[str, Any]:
        req = build_put_request(
            self._table_name, record, conditions=conditions, marshaller=self._marshaller, **params
        )
        return self._call("put_item", req)

    def delete(
        self,
        key: Mapping[str, Any],
        *,
        conditions: ConditionList | None = None,
        return_values: ReturnValues | None = None,
        **params: Any,
    ) -> ItemResult:
        req: dict[str, Any] = {
            "TableName": self._table_name,
            "Key": self._marshaller.marshall(key),
            **params,
        }
        if conditions:
            built = get_condition_expression({}, conditions)
            if built.condition_expression is not None:
                req["ConditionExpression"] = built.condition_expression
            if built.names:
                req["ExpressionAttributeNames"] = built.names
            if built.condition_values:
                req["ExpressionAttributeValues"] = self._marshaller.marshall_values(built.condition_values)
        if return_values is not None:
            req["ReturnValues"] = _check_return_values(return_values)

        resp = self._call("delete_item", req)
        return ItemResult(response=resp, item=resp.get("Attributes"), marshaller=self._marshaller)

    def update(
        self,
        key: Mapping[str, Any],
        *,
        update_expression: str,
        values: Mapping[str, Any] | None = None,
        names: Mapping[str, str] | None = None,
        condition_expression: str | None = None,
        return_values: ReturnValues = "NONE",
    ) -> ItemResult:
        if not update_expression:
            raise ValidationError("update_expression is required")

        req: dict[str, Any] = {
            "TableName": self._table_name,
            "Key": self._marshaller.marshall(key),
            "UpdateExpression": update_expression,
            "ReturnValues": _check_return_values(return_values),
        }
        if values:
            req["ExpressionAttributeValues"] = self._marshaller.marshall_values(values)
        if names:
            req["ExpressionAttributeNames"] = dict(names)
        if condition_expression is not None:
            req["ConditionExpression"] = condition_expression

        resp = self._call("update_item", req)
        return ItemResult(response=resp, item=resp.get("Attributes"), marshaller=self._marshaller)

    def shallow_update(
        self,
        key: Mapping[str, Any],
        record: Mapping[str, Any],
        conditions: ConditionList | None = None,
        return_values: ReturnValues = "NONE",
    ) -> ItemResult:
        """Overwrite top-level attributes of ``record``; nested paths need ``update``."""
        built = get_condition_expression(record, conditions, include_all_fields=True)
        if built.update_expression is None:
            raise ValidationError("no updates provided")

        return self.update(
            key,
            update_expression=built.update_expression,
            values=built.values,
            names=built.names,
            condition_expression=built.condition_expression,
            return_values=return_values,
        )

    def query(
        self,
        key_conditions: ExpressionMap | None = None,
        *,
        filter_conditions: ExpressionMap | None = None,
        batch_callback: BatchCallback | None = None,
        **params: Any,
    ) -> QueryResult:
        req = build_query_request(
            self._table_name,
            key_conditions=key_conditions,
            filter_conditions=filter_conditions,
            marshaller=self._marshaller,
            **params,
        )
        return run_query(self._client, req, batch_callback=batch_callback, marshaller=self._marshaller)

    def query_index(
        self,
        index_name: str,
        key_conditions: ExpressionMap | None = None,
        *,
        filter_conditions: ExpressionMap | None = None,
        batch_callback: BatchCallback | None = None,
        **params: Any,
    ) -> QueryResult:
        if not index_name:
            raise ValidationError("index_name is required")
        req = build_query_request(
            self._table_name,
            index_name=index_name,
            key_conditions=key_conditions,
            filter_conditions=filter_conditions,
            marshaller=self._marshaller,
            **params,
        )
        return run_query(self._client, req, batch_callback=batch_callback, marshaller=self._marshaller)

    def batch_put[S, R](
        self,
        records: Sequence[S],
        transform: Transform[S, R] | None = None,
    ) -> BatchWriteResult[R]:
        return batch_write(
            self._client,
            self._table_name,
            records,
            request="PutRequest",
            transform=transform,
            marshaller=self._marshaller,
            max_retries=self._max_batch_retries,
            sleep=self._sleep,
        )

    def batch_delete[S, R](
        self,
        keys: Sequence[S],
        transform: Transform[S, R] | None = None,
    ) -> BatchWriteResult[R]:
        return batch_write(
            self._client,
            self._table_name,
            keys,
            request="DeleteRequest",
            transform=transform,
            marshaller=self._marshaller,
            max_retries=self._max_batch_retries,
            sleep=self._sleep,
        )
