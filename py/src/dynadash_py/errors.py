from __future__ import annotations

from typing import Any


class DynadashPyError(Exception):
    pass


class ValidationError(DynadashPyError):
    pass


class InvalidExpressionValue(ValidationError):
    def __init__(self, field: str) -> None:
        super().__init__(f"value must not be undefined in an expression: {field}")
        self.field = field


class TransportError(DynadashPyError):
    def __init__(self, *, code: str, message: str, operation: str | None = None) -> None:
        prefix = f"{operation}: " if operation else ""
        super().__init__(f"{prefix}{code}: {message}")
        self.code = code
        self.message = message
        self.operation = operation


class ConditionFailedError(TransportError):
    pass


class NotFoundError(TransportError):
    pass


class ThrottledError(TransportError):
    pass


class BatchWriteExhausted(DynadashPyError):
    def __init__(self, *, operation: str, unprocessed_count: int, retry_count: int) -> None:
        super().__init__(
            f"{operation}: retry limit exceeded after {retry_count} retries (unprocessed={unprocessed_count})"
        )
        self.operation = operation
        self.unprocessed_count = unprocessed_count
        self.retry_count = retry_count


class PredicateFailure(DynadashPyError):
    def __init__(self, *, record: Any, index: int) -> None:
        super().__init__(f"transform failed for record at index {index}")
        self.record = record
        self.index = index
