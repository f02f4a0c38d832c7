from __future__ import annotations

from botocore.exceptions import BotoCoreError, ClientError

from .errors import (
    ConditionFailedError,
    NotFoundError,
    ThrottledError,
    TransportError,
)

_THROTTLING_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "RequestLimitExceeded",
        "ThrottlingException",
    }
)


def map_client_error(err: ClientError, *, operation: str | None = None) -> Exception:
    code = str(err.response.get("Error", {}).get("Code", ""))
    message = str(err.response.get("Error", {}).get("Message", ""))

    if code == "ConditionalCheckFailedException":
        return ConditionFailedError(code=code, message=message, operation=operation)
    if code == "ResourceNotFoundException":
        return NotFoundError(code=code, message=message, operation=operation)
    if code in _THROTTLING_CODES:
        return ThrottledError(code=code, message=message, operation=operation)
    return TransportError(code=code or "UnknownError", message=message or str(err), operation=operation)


def map_transport_error(err: Exception, *, operation: str | None = None) -> Exception:
    if isinstance(err, ClientError):
        return map_client_error(err, operation=operation)
    if isinstance(err, BotoCoreError):
        return TransportError(code="BotoCoreError", message=str(err), operation=operation)
    return err
