from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, cast

import boto3
from botocore.config import Config

from .errors import ValidationError

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_RETRY_MODE = "adaptive"
_RETRY_MODES = frozenset({"legacy", "standard", "adaptive"})


@dataclass(frozen=True)
class ClientSettings:
    region: str | None = None
    endpoint_url: str | None = None
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    retry_mode: str = DEFAULT_RETRY_MODE
    connect_timeout: float = 5.0
    read_timeout: float = 30.0
    max_pool_connections: int = 50

    def __post_init__(self) -> None:
        if self.retry_mode not in _RETRY_MODES:
            raise ValidationError(f"unsupported retry mode: {self.retry_mode}")
        if self.max_attempts < 1:
            raise ValidationError("max_attempts must be >= 1")
        if self.max_pool_connections < 1:
            raise ValidationError("max_pool_connections must be >= 1")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = os.environ) -> ClientSettings:
        return cls(
            region=environ.get("AWS_REGION") or environ.get("AWS_DEFAULT_REGION") or None,
            endpoint_url=environ.get("DYNAMODB_ENDPOINT") or None,
            max_attempts=_env_int(environ, "DYNADASH_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS),
            retry_mode=environ.get("DYNADASH_RETRY_MODE") or DEFAULT_RETRY_MODE,
            connect_timeout=_env_float(environ, "DYNADASH_CONNECT_TIMEOUT", 5.0),
            read_timeout=_env_float(environ, "DYNADASH_READ_TIMEOUT", 30.0),
            max_pool_connections=_env_int(environ, "DYNADASH_MAX_POOL_CONNECTIONS", 50),
        )


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as err:
        raise ValidationError(f"{name} must be an integer") from err


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = (environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as err:
        raise ValidationError(f"{name} must be a number") from err


def create_boto3_config(settings: ClientSettings) -> Config:
    return Config(
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
        max_pool_connections=settings.max_pool_connections,
        retries={"max_attempts": settings.max_attempts, "mode": settings.retry_mode},
    )


def create_dynamodb_client(
    settings: ClientSettings | None = None,
    *,
    session: Any | None = None,
) -> Any:
    """Build a DynamoDB client; callers own it and pass it to every Table that needs it."""
    settings = settings or ClientSettings.from_env()
    sess = session or boto3.session.Session(region_name=settings.region)

    kwargs: dict[str, Any] = {"config": create_boto3_config(settings)}
    if settings.region is not None:
        kwargs["region_name"] = settings.region
    if settings.endpoint_url is not None:
        kwargs["endpoint_url"] = settings.endpoint_url
    return cast(Any, sess).client("dynamodb", **kwargs)
