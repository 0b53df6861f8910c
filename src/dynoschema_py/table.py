from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Literal

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import ClientError

from .attributes import AttributeRegistry
from .aws_errors import is_retryable
from .aws_errors import map_client_error as _map_client_error
from .backoff import DEFAULT_MAX_RETRIES, backoff_call, exponential_delay
from .errors import BatchRetryExceededError, ValidationError
from .expressions import EXPRESSION_KEYS, with_condition
from .fields import FieldSchema
from .record import RecordSchema
from .update_body import UpdateBody, build_update_parameters, remove_empty, transfer_empty_to_remove

logger = logging.getLogger(__name__)

type Projection = Sequence[str] | Literal["ALL"] | None
type ReturnValues = Literal["NONE", "ALL_OLD", "UPDATED_OLD", "ALL_NEW", "UPDATED_NEW"]


@dataclass(frozen=True)
class Page:
    items: list[dict[str, Any]]
    last_evaluated_key: dict[str, Any] | None = None
    count: int = 0


def _chunked[T](items: Sequence[T], size: int) -> Sequence[Sequence[T]]:
    if size <= 0:
        raise ValueError("size must be > 0")
    return [items[i : i + size] for i in range(0, len(items), size)]


def _to_dynamo(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, Mapping):
        return {k: _to_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_dynamo(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return {_to_dynamo(v) for v in value}
    return value


def _from_dynamo(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, Mapping):
        return {k: _from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return {_from_dynamo(v) for v in value}
    return value


def combine_expressions(
    *expressions: Mapping[str, Any] | None,
    registry: AttributeRegistry | None = None,
) -> dict[str, Any]:
    """Merges independently built expressions into one request fragment.

    Expressions of the same kind are joined with AND; placeholder tokens are
    renumbered so that fragments never collide.
    """
    registry = registry or AttributeRegistry(reuse_names=True)
    out: dict[str, Any] = {}
    for expression in expressions:
        if not expression:
            continue
        translation = registry.merge(expression)
        for key in EXPRESSION_KEYS:
            text = expression.get(key)
            if not text:
                continue
            text = translation.apply(text)
            out[key] = f"({out[key]}) AND ({text})" if key in out else text
        if expression.get("IndexName"):
            out["IndexName"] = expression["IndexName"]
    out.update(registry.expression)
    return out


class TableService:
    """Schema-aware access to one table.

    Writes are validated and converted to their wire shape before they reach
    the client, reads are converted back. Throttling errors are retried with
    exponential backoff.
    """

    def __init__(
        self,
        table_name: str,
        schema: RecordSchema | Mapping[str, FieldSchema | Mapping[str, Any]],
        *,
        client: Any | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        delay: Callable[[int], float] | None = None,
        sleep: Callable[[float], None] | None = time.sleep,
    ) -> None:
        if not table_name:
            raise ValueError("table_name is required")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self._table_name = table_name
        self._schema = schema if isinstance(schema, RecordSchema) else RecordSchema(schema, name=table_name)
        self._client: Any = client or boto3.client("dynamodb")
        self._max_retries = max_retries
        self._delay = delay or exponential_delay()
        self._sleep = sleep
        self._serializer = TypeSerializer()
        self._deserializer = TypeDeserializer()

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def schema(self) -> RecordSchema:
        return self._schema

    def put(
        self,
        obj: Mapping[str, Any],
        *,
        condition: Mapping[str, Any] | None = None,
        override_condition: bool = False,
    ) -> dict[str, Any]:
        """Creates a new item.

        The write is guarded so that an existing item with the same key is
        never replaced; ``condition`` is added to that guard. With
        ``override_condition`` the guard is dropped and ``condition`` alone is
        used, which allows overwrites.
        """
        self._raise_if_invalid(self._schema.validate(obj))
        wire = remove_empty(self._schema.to_wire(obj))

        if override_condition:
            guard = condition
        else:
            exists = with_condition(self._schema.primary_key).does_not_exist()
            if self._schema.sort_key is not None:
                exists = exists.and_(self._schema.sort_key).does_not_exist()
            guard = exists.and_(condition).query()
        req = self._with_expressions({"TableName": self._table_name, "Item": self._serialize_values(wire)}, guard)
        self._call("put_item", req)
        return self._schema.from_wire(wire)

    def put_all(self, objs: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        errors: list[str] = []
        for obj in objs:
            errors.extend(self._schema.validate(obj))
        self._raise_if_invalid(errors)

        wires = [remove_empty(self._schema.to_wire(obj)) for obj in objs]
        self._batch_write([{"PutRequest": {"Item": self._serialize_values(w)}} for w in wires], operation="put_all")
        return [self._schema.from_wire(w) for w in wires]

    def get(
        self,
        key: Mapping[str, Any],
        *,
        projection: Projection = None,
        consistent_read: bool = False,
    ) -> dict[str, Any] | None:
        req = self._with_expressions(
            {"TableName": self._table_name, "Key": self._to_key(key), "ConsistentRead": consistent_read},
            projection=projection,
        )
        item = self._call("get_item", req).get("Item")
        if not item:
            return None
        return self._from_item(item)

    def get_all(
        self,
        keys: Sequence[Mapping[str, Any]],
        *,
        projection: Projection = None,
        consistent_read: bool = False,
    ) -> list[dict[str, Any]]:
        if not keys:
            return []

        base_req = self._with_expressions({"ConsistentRead": consistent_read}, projection=projection)
        out: list[dict[str, Any]] = []
        for chunk in _chunked([self._to_key(k) for k in keys], 100):
            pending = list(chunk)
            attempts = 0
            while pending:
                resp = self._call("batch_get_item", {"RequestItems": {self._table_name: {**base_req, "Keys": pending}}})
                out.extend(self._from_item(i) for i in resp.get("Responses", {}).get(self._table_name, []))

                pending = resp.get("UnprocessedKeys", {}).get(self._table_name, {}).get("Keys") or []
                if pending:
                    attempts = self._wait_for_retry("get_all", attempts, len(pending))
        return out

    def update(
        self,
        key: Mapping[str, Any],
        body: UpdateBody | Mapping[str, Any],
        *,
        condition: Mapping[str, Any] | None = None,
        return_values: ReturnValues = "ALL_NEW",
    ) -> dict[str, Any] | None:
        update = transfer_empty_to_remove(UpdateBody.coerce(body))
        self._raise_if_invalid(self._schema.validate_update(update))

        wire = self._schema.to_wire_update(update)
        if wire.is_empty():
            raise ValidationError("update body has no changes")

        exists = with_condition(self._schema.primary_key).exists()
        if self._schema.sort_key is not None:
            exists = exists.and_(self._schema.sort_key).exists()

        params = build_update_parameters(wire)
        req: dict[str, Any] = {
            "TableName": self._table_name,
            "Key": self._to_key(key),
            "UpdateExpression": params["UpdateExpression"],
            "ReturnValues": return_values,
        }
        condition_params = combine_expressions(exists.and_(condition).query())
        req["ConditionExpression"] = condition_params["ConditionExpression"]
        names = {**params.get("ExpressionAttributeNames", {}), **condition_params.get("ExpressionAttributeNames", {})}
        values = {**params.get("ExpressionAttributeValues", {}), **condition_params.get("ExpressionAttributeValues", {})}
        if names:
            req["ExpressionAttributeNames"] = names
        if values:
            req["ExpressionAttributeValues"] = self._serialize_values(values)

        attrs = self._call("update_item", req).get("Attributes")
        if not attrs:
            return None
        return self._from_item(attrs)

    def delete(self, key: Mapping[str, Any], *, condition: Mapping[str, Any] | None = None) -> None:
        req = self._with_expressions({"TableName": self._table_name, "Key": self._to_key(key)}, condition)
        self._call("delete_item", req)

    def delete_all(self, keys: Sequence[Mapping[str, Any]]) -> None:
        self._batch_write([{"DeleteRequest": {"Key": self._to_key(k)}} for k in keys], operation="delete_all")

    def query(
        self,
        key_condition: Mapping[str, Any],
        *,
        filter: Mapping[str, Any] | None = None,
        projection: Projection = None,
        limit: int | None = None,
        start_key: Mapping[str, Any] | None = None,
        scan_forward: bool = True,
        consistent_read: bool = False,
    ) -> Page:
        if "KeyConditionExpression" not in key_condition:
            raise ValidationError("query requires a KeyConditionExpression")
        req: dict[str, Any] = {
            "TableName": self._table_name,
            "ScanIndexForward": scan_forward,
            "ConsistentRead": consistent_read,
        }
        return self._page("query", req, [key_condition, filter], projection, limit, start_key)

    def count(self, key_condition: Mapping[str, Any], *, filter: Mapping[str, Any] | None = None) -> int:
        """Counts the items matching ``key_condition`` and ``filter`` across every page."""
        if "KeyConditionExpression" not in key_condition:
            raise ValidationError("count requires a KeyConditionExpression")
        req = self._with_expressions(
            {"TableName": self._table_name, "Select": "COUNT"}, key_condition, filter, projection="ALL"
        )
        total = 0
        while True:
            resp = self._call("query", req)
            total += int(resp.get("Count", 0))
            last = resp.get("LastEvaluatedKey")
            if not last:
                return total
            req = {**req, "ExclusiveStartKey": last}

    def scan(
        self,
        filter: Mapping[str, Any] | None = None,
        *,
        projection: Projection = None,
        limit: int | None = None,
        start_key: Mapping[str, Any] | None = None,
    ) -> Page:
        return self._page("scan", {"TableName": self._table_name}, [filter], projection, limit, start_key)

    def _page(
        self,
        operation: str,
        req: dict[str, Any],
        expressions: Sequence[Mapping[str, Any] | None],
        projection: Projection,
        limit: int | None,
        start_key: Mapping[str, Any] | None,
    ) -> Page:
        if limit is not None and limit <= 0:
            raise ValidationError("limit must be > 0")
        req = self._with_expressions(req, *expressions, projection=projection)
        if limit is not None:
            req["Limit"] = limit
        if start_key:
            req["ExclusiveStartKey"] = self._serialize_values(start_key)

        resp = self._call(operation, req)
        items = [self._from_item(i) for i in resp.get("Items", [])]
        last = resp.get("LastEvaluatedKey")
        return Page(
            items=items,
            last_evaluated_key=self._deserialize_item(last) if last else None,
            count=int(resp.get("Count", len(items))),
        )

    def _with_expressions(
        self,
        req: dict[str, Any],
        *expressions: Mapping[str, Any] | None,
        projection: Projection = "ALL",
    ) -> dict[str, Any]:
        registry = AttributeRegistry(reuse_names=True)
        combined = combine_expressions(*expressions, registry=registry)

        if projection != "ALL":
            fields = self._schema.known_keys if projection is None else tuple(projection)
            if fields:
                combined["ProjectionExpression"] = ", ".join(registry.add_name(f) for f in fields)
                combined["ExpressionAttributeNames"] = registry.names

        if "ExpressionAttributeValues" in combined:
            combined["ExpressionAttributeValues"] = self._serialize_values(combined["ExpressionAttributeValues"])
        return {**req, **combined}

    def _batch_write(self, requests: list[dict[str, Any]], *, operation: str) -> None:
        for chunk in _chunked(requests, 25):
            pending = list(chunk)
            attempts = 0
            while pending:
                resp = self._call("batch_write_item", {"RequestItems": {self._table_name: pending}})
                pending = resp.get("UnprocessedItems", {}).get(self._table_name) or []
                if pending:
                    attempts = self._wait_for_retry(operation, attempts, len(pending))

    def _wait_for_retry(self, operation: str, attempts: int, unprocessed: int) -> int:
        if attempts >= self._max_retries:
            raise BatchRetryExceededError(operation=operation, unprocessed_count=unprocessed)
        attempts += 1
        logger.warning("%s: %d unprocessed entries, retry %d/%d", operation, unprocessed, attempts, self._max_retries)
        if self._sleep is not None:
            self._sleep(self._delay(attempts))
        return attempts

    def _call(self, operation: str, req: Mapping[str, Any]) -> dict[str, Any]:
        method = getattr(self._client, operation)
        logger.debug("%s %s", operation, self._table_name)
        try:
            return backoff_call(
                lambda: method(**req),
                max_retries=self._max_retries,
                should_retry=is_retryable,
                delay=self._delay,
                sleep=self._sleep,
            )
        except ClientError as err:
            raise _map_client_error(err) from err

    def _raise_if_invalid(self, errors: list[str]) -> None:
        if errors:
            raise ValidationError(errors)

    def _to_key(self, key: Mapping[str, Any]) -> dict[str, Any]:
        missing = [k for k in self._schema.keys if key.get(k) is None]
        if missing:
            raise ValidationError([f'Key "{k}" is required but is not defined.' for k in missing])
        wire = self._schema.to_wire(self._schema.key_of(key))
        return self._serialize_values({k: wire[k] for k in self._schema.keys})

    def _serialize_values(self, values: Mapping[str, Any]) -> dict[str, Any]:
        return {k: self._serializer.serialize(_to_dynamo(v)) for k, v in values.items()}

    def _deserialize_item(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return {k: _from_dynamo(self._deserializer.deserialize(v)) for k, v in item.items()}

    def _from_item(self, item: Mapping[str, Any]) -> dict[str, Any]:
        return self._schema.from_wire(self._deserialize_item(item))
