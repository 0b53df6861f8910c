from __future__ import annotations

from collections.abc import Sequence


class DynoschemaError(Exception):
    pass


class ConditionFailedError(DynoschemaError):
    pass


class NotFoundError(DynoschemaError):
    pass


class ValidationError(DynoschemaError):
    def __init__(self, messages: str | Sequence[str]) -> None:
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__(f"Errors: [ {', '.join(self.messages)} ]")


class SchemaDefinitionError(ValueError):
    pass


class BatchRetryExceededError(DynoschemaError):
    def __init__(self, *, operation: str, unprocessed_count: int) -> None:
        super().__init__(f"{operation}: retry limit exceeded (unprocessed={unprocessed_count})")
        self.operation = operation
        self.unprocessed_count = unprocessed_count


class AwsError(DynoschemaError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
