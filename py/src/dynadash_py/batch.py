from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from .aws_errors import map_transport_error
from .errors import BatchWriteExhausted, PredicateFailure, ValidationError
from .marshalling import DEFAULT_MARSHALLER, Marshaller

logger = logging.getLogger(__name__)

MAX_BATCH_WRITE_SIZE = 25
BATCH_WRITE_RETRY_THRESHOLD = 10

type WriteRequestKind = Literal["PutRequest", "DeleteRequest"]
type Transform[S, R] = Callable[[S, int], R | None]


def chunk_list[T](items: Sequence[T], size: int) -> list[list[T]]:
    if size <= 0:
        raise ValueError("size must be > 0")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def backoff_seconds(retry_count: int) -> float:
    # 2s floor plus 12^n milliseconds
    return (2000 + 12**retry_count) / 1000.0


def _has_unprocessed(unprocessed: Mapping[str, Any] | None) -> bool:
    return bool(unprocessed) and any(unprocessed.values())


def _unprocessed_count(unprocessed: Mapping[str, Any]) -> int:
    return sum(len(reqs or []) for reqs in unprocessed.values())


def batch_write_table(
    client: Any,
    request_items: Mapping[str, Sequence[Mapping[str, Any]]],
    *,
    max_retries: int = BATCH_WRITE_RETRY_THRESHOLD,
    sleep: Callable[[float], None] | None = time.sleep,
) -> Mapping[str, Any]:
    """Send one BatchWriteItem and resend whatever the service leaves unprocessed.

    Each retry carries only the unprocessed remainder of the previous
    attempt and waits ``backoff_seconds(retry_count)`` first. Raises
    ``BatchWriteExhausted`` once ``max_retries`` retries still leave items.
    """
    if max_retries < 0:
        raise ValidationError("max_retries must be >= 0")

    pending: Mapping[str, Any] = {table: list(reqs) for table, reqs in request_items.items()}
    retry_count = 0

    while True:
        try:
            resp = client.batch_write_item(RequestItems=pending)
        except Exception as err:
            logger.error(
                "batch_write_item failed (retry %d): %s; request=%r", retry_count, err, pending
            )
            mapped = map_transport_error(err, operation="batch_write_item")
            if mapped is err:
                raise
            raise mapped from err

        unprocessed = resp.get("UnprocessedItems") or {}
        if not _has_unprocessed(unprocessed):
            return resp

        count = _unprocessed_count(unprocessed)
        if retry_count >= max_retries:
            logger.error("batch write exhausted %d retries; unprocessed items: %r", retry_count, unprocessed)
            raise BatchWriteExhausted(
                operation="batch_write_item", unprocessed_count=count, retry_count=retry_count
            )

        delay = backoff_seconds(retry_count)
        logger.warning(
            "batch write left %d unprocessed items; retry %d in %.3fs", count, retry_count + 1, delay
        )
        if sleep is not None:
            sleep(delay)
        retry_count += 1
        pending = unprocessed


@dataclass
class BatchWriteResult[R]:
    responses: list[Mapping[str, Any]] = field(default_factory=list)
    accepted: list[R] = field(default_factory=list)


def _dedupe_key(record: Any) -> str:
    return json.dumps(record, sort_keys=True, default=str, separators=(",", ":"))


def batch_write[S, R](
    client: Any,
    table_name: str,
    records: Sequence[S],
    *,
    request: WriteRequestKind = "PutRequest",
    transform: Transform[S, R] | None = None,
    marshaller: Marshaller = DEFAULT_MARSHALLER,
    max_retries: int = BATCH_WRITE_RETRY_THRESHOLD,
    sleep: Callable[[float], None] | None = time.sleep,
) -> BatchWriteResult[R]:
    if not table_name:
        raise ValidationError("table_name is required")
    if request not in {"PutRequest", "DeleteRequest"}:
        raise ValidationError(f"unsupported write request: {request}")

    chunks = chunk_list(records, MAX_BATCH_WRITE_SIZE)
    logger.info(
        "batch %s table=%s records=%d chunks=%d", request, table_name, len(records), len(chunks)
    )

    result: BatchWriteResult[R] = BatchWriteResult()
    seen_deletes: set[str] = set()

    for chunk_index, chunk in enumerate(chunks):
        base = chunk_index * MAX_BATCH_WRITE_SIZE
        requests: list[dict[str, Any]] = []
        accepted: list[R] = []

        for offset, item in enumerate(chunk):
            index = base + offset
            row: Any = item
            if transform is not None:
                try:
                    row = transform(item, index)
                except Exception as err:
                    logger.error(
                        "transform failed for table=%s index=%d record=%r: %s", table_name, index, item, err
                    )
                    raise PredicateFailure(record=item, index=index) from err
                if not row:
                    continue

            if request == "DeleteRequest":
                dedupe_key = _dedupe_key(row)
                if dedupe_key in seen_deletes:
                    continue
                seen_deletes.add(dedupe_key)

            try:
                encoded = marshaller.marshall(row)
            except ValidationError:
                logger.error("marshall failed for table=%s index=%d record=%r", table_name, index, row)
                raise

            if request == "DeleteRequest":
                requests.append({"DeleteRequest": {"Key": encoded}})
            else:
                requests.append({"PutRequest": {"Item": encoded}})
            accepted.append(row)

        if not requests:
            continue

        result.responses.append(
            batch_write_table(client, {table_name: requests}, max_retries=max_retries, sleep=sleep)
        )
        result.accepted.extend(accepted)

    return result
