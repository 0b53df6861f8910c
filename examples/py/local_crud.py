from __future__ import annotations

import os
import uuid
from datetime import UTC, datetime

import boto3

from dynoschema_py import RecordSchema, TableService, index, scan


def _client():
    return boto3.client(
        "dynamodb",
        endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


NOTES = RecordSchema(
    {
        "pk": {"type": "S", "primary": True},
        "sk": {"type": "S", "sort": True},
        "value": {"type": "N", "integer": True},
        "status": {"type": "S", "enum": ["open", "closed"], "default": "open"},
        "created": {"type": "Date", "dateFormat": "Timestamp", "default": lambda: datetime.now(UTC)},
    },
    trim_unknown=True,
    name="notes",
)


def main() -> None:
    client = _client()
    table_name = f"dynoschema_py_example_{uuid.uuid4().hex[:12]}"

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
        notes = TableService(table_name, NOTES, client=client)

        notes.put_all([{"pk": "A", "sk": sk, "value": int(sk)} for sk in ("001", "010", "100")])
        notes.update({"pk": "A", "sk": "010"}, {"set": {"status": "closed"}})

        print("get:", notes.get({"pk": "A", "sk": "010"}))

        page = notes.query(
            index("pk").equals("A").query(),
            filter=scan("status").equals("open").query(),
        )
        print("open notes:", page.items)
    finally:
        client.delete_table(TableName=table_name)


if __name__ == "__main__":
    main()
