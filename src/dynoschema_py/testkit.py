from __future__ import annotations

from .mocks import ANY, FakeDynamoDBClient, client_error


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def no_sleep(_: float) -> None:
    return None


__all__ = [
    "ANY",
    "FakeDynamoDBClient",
    "RecordingSleep",
    "client_error",
    "no_sleep",
]
