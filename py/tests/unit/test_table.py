from __future__ import annotations

import logging

import pytest
from botocore.exceptions import ClientError

from dynadash_py import (
    ConditionFailedError,
    FieldCondition,
    InvalidExpressionValue,
    Table,
    ValidationError,
    build_put_request,
)
from dynadash_py.mocks import ANY, FakeDynamoDBClient


def _client_error(code: str, operation: str = "PutItem") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


def test_put_request_with_not_exists_condition() -> None:
    req = build_put_request(
        "table",
        {"id": "yo", "context": "asdf", "expiresAt": 1234567890},
        conditions=[{"key": "id", "func": "attribute_not_exists"}],
    )
    assert req == {
        "TableName": "table",
        "Item": {
            "id": {"S": "yo"},
            "context": {"S": "asdf"},
            "expiresAt": {"N": "1234567890"},
        },
        "ConditionExpression": "attribute_not_exists(#id)",
        "ExpressionAttributeNames": {"#id": "id"},
    }


def test_put_request_without_conditions_is_plain() -> None:
    req = build_put_request("table", {"id": "yo"}, ReturnConsumedCapacity="TOTAL")
    assert req == {"TableName": "table", "Item": {"id": {"S": "yo"}}, "ReturnConsumedCapacity": "TOTAL"}

    with pytest.raises(ValidationError, match="table_name is required"):
        build_put_request("", {"id": "yo"})


def test_put_request_encodes_condition_values() -> None:
    req = build_put_request(
        "table",
        {"id": "yo", "version": 3},
        conditions=[FieldCondition(key="version", op="<", value=3)],
    )
    assert req["ConditionExpression"] == "#version < :versionXvv"
    assert req["ExpressionAttributeValues"] == {":versionXvv": {"N": "3"}}


def test_shallow_update_sends_condition_and_set_clauses() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "update_item",
        {
            "TableName": "table",
            "Key": {"hash": {"S": "1"}, "sort": {"S": "abc"}},
            "ConditionExpression": "attribute_not_exists(#id) OR #id = :idXvv",
            "UpdateExpression": "SET #yo = :yo",
            "ExpressionAttributeNames": {"#id": "id", "#yo": "yo"},
            "ExpressionAttributeValues": {":idXvv": {"S": "123"}, ":yo": {"S": "John"}},
            "ReturnValues": "NONE",
        },
        response={},
    )

    result = Table("table", client=client).shallow_update(
        {"hash": "1", "sort": "abc"},
        {"yo": "John"},
        [
            {"key": "id", "func": "attribute_not_exists", "logicOp": "OR"},
            {"key": "id", "op": "=", "value": "123"},
        ],
    )

    assert result.to_plain() is None
    client.assert_no_pending()


def test_shallow_update_returns_new_attributes() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "update_item",
        {"ReturnValues": "ALL_NEW"},
        response={"Attributes": {"hash": {"S": "1"}, "count": {"N": "4"}}},
    )

    result = Table("table", client=client).shallow_update({"hash": "1"}, {"count": 4}, return_values="ALL_NEW")

    assert "ConditionExpression" not in client.calls_for("update_item")[0]
    assert result.to_plain() == {"hash": "1", "count": 4}


def test_shallow_update_rejects_empty_or_undefined_records() -> None:
    table = Table("table", client=FakeDynamoDBClient())

    with pytest.raises(ValidationError, match="no updates provided"):
        table.shallow_update({"hash": "1"}, {})
    with pytest.raises(InvalidExpressionValue, match="name"):
        table.shallow_update({"hash": "1"}, {"name": None})


def test_update_validates_inputs() -> None:
    table = Table("table", client=FakeDynamoDBClient())

    with pytest.raises(ValidationError, match="update_expression is required"):
        table.update({"hash": "1"}, update_expression="")
    with pytest.raises(ValidationError, match="unsupported ReturnValues"):
        table.update({"hash": "1"}, update_expression="SET #a = :a", return_values="EVERYTHING")  # type: ignore[arg-type]


def test_update_passes_expression_through() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "update_item",
        {
            "UpdateExpression": "ADD #n :inc",
            "ExpressionAttributeNames": {"#n": "n"},
            "ExpressionAttributeValues": {":inc": {"N": "1"}},
            "ConditionExpression": "attribute_exists(#n)",
        },
        response={"Attributes": {"n": {"N": "2"}}},
    )

    result = Table("table", client=client).update(
        {"hash": "1"},
        update_expression="ADD #n :inc",
        values={":inc": 1},
        names={"#n": "n"},
        condition_expression="attribute_exists(#n)",
        return_values="UPDATED_NEW",
    )
    assert result.to_plain() == {"n": 2}


def test_get_with_projection_and_missing_item() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "get_item",
        {
            "TableName": "table",
            "Key": {"hash": {"S": "1"}},
            "ConsistentRead": True,
            "ProjectionExpression": "#p_name, #p_created_at",
            "ExpressionAttributeNames": {"#p_name": "name", "#p_created_at": "created-at"},
        },
        response={"Item": {"name": {"S": "Ada"}, "created-at": {"N": "10"}}},
    )
    client.expect("get_item", ANY, response={})

    table = Table("table", client=client)
    found = table.get({"hash": "1"}, projection=["name", "created-at"], consistent_read=True)
    missing = table.get({"hash": "2"})

    assert found.to_plain() == {"name": "Ada", "created-at": 10}
    assert found.to_plain(lambda row: row["name"]) == "Ada"
    assert missing.item is None
    assert missing.to_plain() is None
    assert "ConsistentRead" not in client.calls_for("get_item")[1]
    client.assert_no_pending()


def test_delete_with_conditions_and_return_values() -> None:
    client = FakeDynamoDBClient()
    client.expect(
        "delete_item",
        {
            "Key": {"hash": {"S": "1"}},
            "ConditionExpression": "#status = :statusXvv",
            "ExpressionAttributeNames": {"#status": "status"},
            "ExpressionAttributeValues": {":statusXvv": {"S": "done"}},
            "ReturnValues": "ALL_OLD",
        },
        response={"Attributes": {"hash": {"S": "1"}, "status": {"S": "done"}}},
    )

    result = Table("table", client=client).delete(
        {"hash": "1"},
        conditions=[{"key": "status", "op": "=", "value": "done"}],
        return_values="ALL_OLD",
    )

    assert result.to_plain() == {"hash": "1", "status": "done"}
    client.assert_no_pending()


def test_conditional_failure_is_mapped_and_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="dynadash_py")
    client = FakeDynamoDBClient()
    original = _client_error("ConditionalCheckFailedException")
    client.expect("put_item", ANY, error=original)

    with pytest.raises(ConditionFailedError) as excinfo:
        Table("table", client=client).put({"id": "yo"}, conditions=[FieldCondition.not_exists("id")])

    assert excinfo.value.__cause__ is original
    assert excinfo.value.code == "ConditionalCheckFailedException"
    assert excinfo.value.operation == "put_item"
    assert "put_item failed on table table" in caplog.text


def test_non_boto_failures_propagate_unchanged() -> None:
    client = FakeDynamoDBClient()
    client.expect("delete_item", ANY, error=RuntimeError("socket closed"))

    with pytest.raises(RuntimeError, match="socket closed"):
        Table("table", client=client).delete({"hash": "1"})


def test_table_requires_name() -> None:
    with pytest.raises(ValueError, match="table_name is required"):
        Table("", client=FakeDynamoDBClient())
    assert Table("t", client=FakeDynamoDBClient()).table_name == "t"
