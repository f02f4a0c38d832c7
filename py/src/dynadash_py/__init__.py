from __future__ import annotations

import json
import logging
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .batch import (
    BATCH_WRITE_RETRY_THRESHOLD,
    MAX_BATCH_WRITE_SIZE,
    BatchWriteResult,
    backoff_seconds,
    batch_write,
    batch_write_table,
    chunk_list,
)
from .conditions import ConditionExpressions, FieldCondition, get_condition_expression
from .errors import (
    BatchWriteExhausted,
    ConditionFailedError,
    DynadashPyError,
    InvalidExpressionValue,
    NotFoundError,
    PredicateFailure,
    ThrottledError,
    TransportError,
    ValidationError,
)
from .expressions import (
    BetweenCondition,
    CompiledExpression,
    KeyCondition,
    build_query_request,
    clean_attribute_name,
    compile_expression_map,
    filter_expression,
    key_condition_expression,
)
from .marshalling import DEFAULT_MARSHALLER, Marshaller
from .query import QueryResult, merge_capacity_stats, merge_consumed_capacity, run_query

if TYPE_CHECKING:
    from .runtime import ClientSettings, create_boto3_config, create_dynamodb_client
    from .table import RETURN_VALUES, ItemResult, Table, build_put_request

logging.getLogger(__name__).addHandler(logging.NullHandler())


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except Exception:
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
    if name in {"Table", "ItemResult", "RETURN_VALUES", "build_put_request"}:
        from . import table

        return getattr(table, name)
    if name in {"ClientSettings", "create_boto3_config", "create_dynamodb_client"}:
        from . import runtime

        return getattr(runtime, name)
    raise AttributeError(name)


__all__ = [
    "BATCH_WRITE_RETRY_THRESHOLD",
    "BatchWriteExhausted",
    "BatchWriteResult",
    "BetweenCondition",
    "ClientSettings",
    "CompiledExpression",
    "ConditionExpressions",
    "ConditionFailedError",
    "DEFAULT_MARSHALLER",
    "DynadashPyError",
    "FieldCondition",
    "InvalidExpressionValue",
    "ItemResult",
    "KeyCondition",
    "MAX_BATCH_WRITE_SIZE",
    "Marshaller",
    "NotFoundError",
    "PredicateFailure",
    "QueryResult",
    "RETURN_VALUES",
    "Table",
    "ThrottledError",
    "TransportError",
    "ValidationError",
    "__repo_version__",
    "__version__",
    "backoff_seconds",
    "batch_write",
    "batch_write_table",
    "build_put_request",
    "build_query_request",
    "chunk_list",
    "clean_attribute_name",
    "compile_expression_map",
    "create_boto3_config",
    "create_dynamodb_client",
    "filter_expression",
    "get_condition_expression",
    "key_condition_expression",
    "merge_capacity_stats",
    "merge_consumed_capacity",
    "run_query",
]
