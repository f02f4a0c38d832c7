from __future__ import annotations

from typing import Any

import pytest

from dynadash_py import ValidationError
from dynadash_py.runtime import ClientSettings, create_boto3_config, create_dynamodb_client


class FakeSession:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def client(self, service_name: str, **kwargs: Any) -> object:
        self.calls.append((service_name, kwargs))
        return object()


def test_settings_from_env_reads_overrides() -> None:
    settings = ClientSettings.from_env(
        {
            "AWS_DEFAULT_REGION": "eu-west-1",
            "DYNAMODB_ENDPOINT": "http://localhost:8000",
            "DYNADASH_MAX_ATTEMPTS": "3",
            "DYNADASH_RETRY_MODE": "standard",
            "DYNADASH_CONNECT_TIMEOUT": "1.5",
            "DYNADASH_READ_TIMEOUT": "9",
            "DYNADASH_MAX_POOL_CONNECTIONS": "4",
        }
    )
    assert settings == ClientSettings(
        region="eu-west-1",
        endpoint_url="http://localhost:8000",
        max_attempts=3,
        retry_mode="standard",
        connect_timeout=1.5,
        read_timeout=9.0,
        max_pool_connections=4,
    )


def test_settings_from_env_defaults() -> None:
    settings = ClientSettings.from_env({"AWS_REGION": "us-east-1", "AWS_DEFAULT_REGION": "eu-west-1"})
    assert settings.region == "us-east-1"
    assert settings.endpoint_url is None
    assert settings.max_attempts == 10
    assert settings.retry_mode == "adaptive"


@pytest.mark.parametrize(
    ("environ", "match"),
    [
        ({"DYNADASH_MAX_ATTEMPTS": "many"}, "DYNADASH_MAX_ATTEMPTS must be an integer"),
        ({"DYNADASH_READ_TIMEOUT": "slow"}, "DYNADASH_READ_TIMEOUT must be a number"),
        ({"DYNADASH_RETRY_MODE": "forever"}, "unsupported retry mode"),
        ({"DYNADASH_MAX_ATTEMPTS": "0"}, "max_attempts must be >= 1"),
        ({"DYNADASH_MAX_POOL_CONNECTIONS": "0"}, "max_pool_connections must be >= 1"),
    ],
)
def test_settings_from_env_rejects_bad_values(environ: dict[str, str], match: str) -> None:
    with pytest.raises(ValidationError, match=match):
        ClientSettings.from_env(environ)


def test_create_boto3_config() -> None:
    cfg = create_boto3_config(ClientSettings(connect_timeout=2.0, read_timeout=4.0, max_attempts=3))
    assert cfg.connect_timeout == 2.0
    assert cfg.read_timeout == 4.0
    assert cfg.retries["max_attempts"] == 3
    assert cfg.retries["mode"] == "adaptive"


def test_create_dynamodb_client_uses_session_and_endpoint() -> None:
    sess = FakeSession()
    create_dynamodb_client(
        ClientSettings(region="us-east-1", endpoint_url="http://localhost:8000"), session=sess
    )

    [(service, kwargs)] = sess.calls
    assert service == "dynamodb"
    assert kwargs["region_name"] == "us-east-1"
    assert kwargs["endpoint_url"] == "http://localhost:8000"
    assert kwargs["config"].retries["max_attempts"] == 10


def test_create_dynamodb_client_omits_unset_options() -> None:
    sess = FakeSession()
    create_dynamodb_client(ClientSettings(), session=sess)

    _, kwargs = sess.calls[0]
    assert set(kwargs) == {"config"}
