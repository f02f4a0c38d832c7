from __future__ import annotations

import logging
import os
import uuid

from dynadash_py import BetweenCondition, FieldCondition, KeyCondition, Table
from dynadash_py.runtime import ClientSettings, create_dynamodb_client


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    settings = ClientSettings.from_env()
    if settings.endpoint_url is None:
        settings = ClientSettings(region=settings.region or "us-east-1", endpoint_url="http://localhost:8000")
    client = create_dynamodb_client(settings)
    table_name = f"dynadash_py_example_{uuid.uuid4().hex[:12]}"

    client.create_table(
        TableName=table_name,
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}, {"AttributeName": "sk", "KeyType": "RANGE"}],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "sk", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    client.get_waiter("table_exists").wait(TableName=table_name)

    try:
        table = Table(table_name, client=client)

        table.batch_put([{"pk": "A", "sk": sk, "value": int(sk)} for sk in ("001", "010", "100")])
        table.put({"pk": "A", "sk": "200", "value": 200}, conditions=[FieldCondition.not_exists("pk")])
        table.shallow_update({"pk": "A", "sk": "010"}, {"value": 11})

        print("get:", table.get({"pk": "A", "sk": "010"}).to_plain())

        page = table.query({"pk": "A", "sk": KeyCondition.begins_with("0")})
        print("query begins_with('0'):", page.to_plain())

        ranged = table.query({"pk": "A", "sk": BetweenCondition("010", "200")})
        print("query between 010 and 200:", ranged.to_plain())
    finally:
        client.delete_table(TableName=table_name)


if __name__ == "__main__":
    main()
