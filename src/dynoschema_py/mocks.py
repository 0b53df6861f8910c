from __future__ import annotations

from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from boto3.dynamodb.types import TypeDeserializer
from botocore.exceptions import ClientError

ATTRIBUTE_VALUE_TYPES = frozenset({"S", "N", "B", "BOOL", "NULL", "M", "L", "SS", "NS", "BS"})
OPERATIONS = (
    "put_item",
    "get_item",
    "update_item",
    "delete_item",
    "query",
    "scan",
    "batch_get_item",
    "batch_write_item",
)

_deserializer = TypeDeserializer()


class _AnySentinel:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _AnySentinel()

type RequestCheck = Mapping[str, Any] | Callable[[Mapping[str, Any]], None]


def is_attribute_value(value: Any) -> bool:
    return isinstance(value, Mapping) and len(value) == 1 and next(iter(value)) in ATTRIBUTE_VALUE_TYPES


def request_mismatches(expected: Any, actual: Any, path: str) -> list[str]:
    """Lists every place where ``actual`` differs from ``expected``.

    Mappings match on the expected keys only and lists element-wise; ``ANY``
    matches anything. A plain Python value matches a DynamoDB AttributeValue
    holding it, so ``{"id": "a"}`` matches ``{"id": {"S": "a"}}``.
    """
    if expected is ANY:
        return []
    if not isinstance(expected, Mapping) and is_attribute_value(actual):
        actual = _deserializer.deserialize(actual)

    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            return [f"{path}: expected mapping, got {type(actual).__name__}"]
        problems: list[str] = []
        for key, value in expected.items():
            if key in actual:
                problems.extend(request_mismatches(value, actual[key], f"{path}.{key}"))
            else:
                problems.append(f"{path}: missing key {key!r}")
        return problems

    if isinstance(expected, list):
        if not isinstance(actual, list) or len(actual) != len(expected):
            return [f"{path}: expected {expected!r}, got {actual!r}"]
        return [
            problem
            for i, (e, a) in enumerate(zip(expected, actual, strict=True))
            for problem in request_mismatches(e, a, f"{path}[{i}]")
        ]

    if expected != actual:
        return [f"{path}: expected {expected!r}, got {actual!r}"]
    return []


def client_error(code: str, message: str = "", *, operation: str = "Operation", status: int = 400) -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": message}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


@dataclass(frozen=True)
class Expectation:
    method: str
    request: RequestCheck | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None


class FakeDynamoDBClient:
    """Stands in for ``boto3.client("dynamodb")`` with scripted responses.

    Only the operations the table service issues are available, and calls
    must arrive in the order they were expected.
    """

    def __init__(self) -> None:
        self._pending: deque[Expectation] = deque()
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def expect(
        self,
        method: str,
        request: RequestCheck | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        if method not in OPERATIONS:
            raise ValueError(f"unsupported DynamoDB operation: {method}")
        self._pending.append(Expectation(method=method, request=request, response=response, error=error))

    def expect_throttle(self, method: str, *, times: int = 1) -> None:
        for _ in range(times):
            self.expect(method, error=client_error("ProvisionedThroughputExceededException", "slow down"))

    def expect_condition_failure(self, method: str, request: RequestCheck | None = None) -> None:
        self.expect(
            method,
            request,
            error=client_error("ConditionalCheckFailedException", "The conditional request failed"),
        )

    def assert_no_pending(self) -> None:
        if self._pending:
            raise AssertionError(f"pending expected calls: {list(self._pending)!r}")

    def requests(self, method: str) -> list[dict[str, Any]]:
        return [req for name, req in self.calls if name == method]

    def _handle(self, method: str, req: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((method, dict(req)))
        if not self._pending:
            raise AssertionError(f"unexpected call: {method}")

        call = self._pending.popleft()
        if call.method != method:
            raise AssertionError(f"expected {call.method}, got {method}")

        if callable(call.request):
            call.request(req)
        elif call.request is not None:
            problems = request_mismatches(call.request, req, method)
            if problems:
                raise AssertionError("; ".join(problems))

        if call.error is not None:
            raise call.error
        return dict(call.response or {})


def _operation(name: str) -> Callable[..., dict[str, Any]]:
    def call(self: FakeDynamoDBClient, **kwargs: Any) -> dict[str, Any]:
        return self._handle(name, kwargs)

    call.__name__ = name
    return call


for _name in OPERATIONS:
    setattr(FakeDynamoDBClient, _name, _operation(_name))
