from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from .errors import SchemaDefinitionError
from .fields import FieldSchema, parse_schema
from .nodes import SchemaNode, build_nodes
from .update_body import UpdateBody, path_touches

AWS_COLUMN_REGEX = r"^aws:.+"


def _head(path: str) -> str:
    return re.split(r"[.\[]", path, maxsplit=1)[0]


class RecordSchema:
    """Validates and converts whole records against a table's field schemas.

    The schema must declare exactly one primary key field and at most one
    sort key field.
    """

    def __init__(
        self,
        schema: Mapping[str, FieldSchema | Mapping[str, Any]],
        *,
        trim_unknown: bool = False,
        trim_constants: bool = False,
        trim_columns_in_get: Sequence[str | re.Pattern[str]] = (),
        name: str = "record",
    ) -> None:
        self.fields = parse_schema(schema)
        self.name = name
        self.trim_unknown = trim_unknown
        self.trim_constants = trim_constants
        self._trim_columns = tuple(re.compile(p) if isinstance(p, str) else p for p in trim_columns_in_get)

        primary = [n for n, f in self.fields.items() if f.primary]
        sort = [n for n, f in self.fields.items() if f.sort]
        if not primary:
            raise SchemaDefinitionError(f"Table {name} must include a primary key.")
        if len(primary) > 1:
            raise SchemaDefinitionError(f"Table {name} must only have one primary key.")
        if len(sort) > 1:
            raise SchemaDefinitionError(f"Table {name} can not have more than one sort key.")
        if sort and sort[0] == primary[0]:
            raise SchemaDefinitionError(f"Table {name} can not use the same field as primary and sort key.")

        self.primary_key: str = primary[0]
        self.sort_key: str | None = sort[0] if sort else None
        self.nodes: tuple[SchemaNode, ...] = build_nodes(self.fields)
        self._names = frozenset(self.fields)

    @property
    def keys(self) -> tuple[str, ...]:
        return (self.primary_key,) if self.sort_key is None else (self.primary_key, self.sort_key)

    @property
    def known_keys(self) -> tuple[str, ...]:
        return tuple(self.fields)

    def key_of(self, obj: Mapping[str, Any]) -> dict[str, Any]:
        return {k: obj[k] for k in self.keys if k in obj}

    def validate(self, obj: Mapping[str, Any]) -> list[str]:
        errors: list[str] = []
        for node in self.nodes:
            errors.extend(node.validate_against_schema(obj))
        return errors

    def validate_update(self, body: UpdateBody | Mapping[str, Any]) -> list[str]:
        update = UpdateBody.coerce(body)
        errors: list[str] = []
        for node in self.nodes:
            errors.extend(node.validate_update_body(update))
        return errors

    def to_wire(self, obj: Mapping[str, Any]) -> dict[str, Any]:
        out = {k: v for k, v in obj.items() if k in self._names} if self.trim_unknown else dict(obj)
        for node in self.nodes:
            out = node.convert_to_wire(out)
        return out

    def from_wire(self, obj: Mapping[str, Any]) -> dict[str, Any]:
        out = {k: v for k, v in obj.items() if not any(p.search(k) for p in self._trim_columns)}
        for node in self.nodes:
            out = node.convert_from_wire(out)
        return out

    def to_wire_update(self, body: UpdateBody | Mapping[str, Any]) -> UpdateBody:
        update = UpdateBody.coerce(body)
        if self.trim_unknown:
            update = self._keep_paths(update, lambda path: _head(path) in self._names)
        if self.trim_constants:
            constants = [n.name for n in self.nodes if n.is_constant]
            update = self._keep_paths(update, lambda path: not any(path_touches(path, c) for c in constants))
        for node in self.nodes:
            update = node.convert_update_body_to_wire(update)
        return update

    @staticmethod
    def _keep_paths(body: UpdateBody, keep: Callable[[str], bool]) -> UpdateBody:
        return UpdateBody(
            set={k: v for k, v in body.set.items() if keep(k)},
            append={k: v for k, v in body.append.items() if keep(k)},
            prepend={k: v for k, v in body.prepend.items() if keep(k)},
            remove=tuple(r for r in body.remove if keep(r)),
        )
