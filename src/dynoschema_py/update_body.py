from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any

from .attributes import AttributeRegistry


@dataclass(frozen=True)
class UpdateBody:
    set: dict[str, Any] = field(default_factory=dict)
    append: dict[str, list[Any]] = field(default_factory=dict)
    prepend: dict[str, list[Any]] = field(default_factory=dict)
    remove: tuple[str, ...] = ()

    @classmethod
    def coerce(cls, body: UpdateBody | Mapping[str, Any] | None) -> UpdateBody:
        if body is None:
            return cls()
        if isinstance(body, UpdateBody):
            return body
        unknown = set(body) - {"set", "append", "prepend", "remove"}
        if unknown:
            raise ValueError(f"unsupported update body keys: {', '.join(sorted(unknown))}")
        return cls(
            set=dict(body.get("set") or {}),
            append={k: list(v) for k, v in (body.get("append") or {}).items()},
            prepend={k: list(v) for k, v in (body.get("prepend") or {}).items()},
            remove=tuple(body.get("remove") or ()),
        )

    def with_changes(self, **changes: Any) -> UpdateBody:
        return replace(self, **changes)

    def is_empty(self) -> bool:
        return not (self.set or self.append or self.prepend or self.remove)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.set:
            out["set"] = dict(self.set)
        if self.append:
            out["append"] = dict(self.append)
        if self.prepend:
            out["prepend"] = dict(self.prepend)
        if self.remove:
            out["remove"] = list(self.remove)
        return out


def path_touches(path: str, name: str) -> bool:
    return path == name or path.startswith(name + ".") or path.startswith(name + "[")


def relative_body(body: UpdateBody, name: str) -> UpdateBody:
    """Re-roots the dotted entries under ``name`` so that ``name.a.b`` becomes ``a.b``."""
    prefix = name + "."

    def strip(entries: Mapping[str, Any]) -> dict[str, Any]:
        return {k[len(prefix) :]: v for k, v in entries.items() if k.startswith(prefix)}

    return UpdateBody(
        set=strip(body.set),
        append=strip(body.append),
        prepend=strip(body.prepend),
        remove=tuple(r[len(prefix) :] for r in body.remove if r.startswith(prefix)),
    )


def _is_removable(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (bool, int, float, Decimal)):
        return False
    return not value


def transfer_empty_to_remove(body: UpdateBody) -> UpdateBody:
    """Moves None, empty strings and empty collections from ``set`` to ``remove``.

    ``False`` and zero are kept as real values.
    """
    keep = {k: v for k, v in body.set.items() if not _is_removable(v)}
    moved = [k for k, v in body.set.items() if _is_removable(v)]
    if not moved:
        return body
    return body.with_changes(set=keep, remove=(*body.remove, *moved))


def remove_empty(value: Any) -> Any:
    """Recursively drops None and empty strings from dicts and lists."""
    if isinstance(value, Mapping):
        out: dict[str, Any] = {}
        for k, v in value.items():
            cleaned = remove_empty(v)
            if cleaned is not None:
                out[k] = cleaned
        return out
    if isinstance(value, list):
        return [c for c in (remove_empty(v) for v in value) if c is not None]
    if isinstance(value, str) and not value:
        return None
    return value


def expand_dotted(value: Any) -> Any:
    """Expands dotted keys into nested dicts: ``{"a.b": 1}`` -> ``{"a": {"b": 1}}``."""
    if isinstance(value, list):
        return [expand_dotted(v) for v in value]
    if not isinstance(value, Mapping):
        return value

    out: dict[str, Any] = {}
    for key, raw in value.items():
        head, _, rest = key.partition(".")
        inner = expand_dotted(raw)
        if rest:
            inner = expand_dotted({rest: inner})
            existing = out.get(head)
            if isinstance(existing, dict) and isinstance(inner, dict):
                inner = _deep_merge(existing, inner)
        out[head] = inner
    return out


def _deep_merge(left: dict[str, Any], right: dict[str, Any]) -> dict[str, Any]:
    out = dict(left)
    for k, v in right.items():
        if isinstance(out.get(k), dict) and isinstance(v, dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def lookup_dotted(value: Any, path: str) -> Any:
    current = value
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


def flatten_dotted(expanded: Mapping[str, Any], paths: Sequence[str]) -> dict[str, Any]:
    """Reads ``paths`` back out of an expanded object, restoring the dotted keys."""
    return {path: lookup_dotted(expanded, path) for path in paths}


def build_update_parameters(
    body: UpdateBody,
    *,
    registry: AttributeRegistry | None = None,
) -> dict[str, Any]:
    """Renders an update body as ``UpdateExpression`` plus attribute maps.

    ``set`` entries become assignments, ``append``/``prepend`` become
    ``list_append`` against an ``if_not_exists`` empty list, and ``remove``
    entries become a REMOVE clause.
    """
    registry = registry or AttributeRegistry(name_prefix="#UN", value_prefix=":UV")
    set_parts: list[str] = []
    remove_parts: list[str] = []

    for path, value in body.set.items():
        set_parts.append(f"{registry.add_name(path)} = {registry.add_value(value)}")

    empty_list: str | None = None
    for path, items in body.append.items():
        empty_list = empty_list or registry.add_value([])
        ref = registry.add_name(path)
        set_parts.append(f"{ref} = list_append(if_not_exists({ref}, {empty_list}), {registry.add_value(list(items))})")

    for path, items in body.prepend.items():
        empty_list = empty_list or registry.add_value([])
        ref = registry.add_name(path)
        set_parts.append(f"{ref} = list_append({registry.add_value(list(items))}, if_not_exists({ref}, {empty_list}))")

    for path in body.remove:
        remove_parts.append(registry.add_name(path))

    expr_parts: list[str] = []
    if set_parts:
        expr_parts.append("SET " + ", ".join(set_parts))
    if remove_parts:
        expr_parts.append("REMOVE " + ", ".join(remove_parts))
    if not expr_parts:
        raise ValueError("update body has no changes")

    return {"UpdateExpression": " ".join(expr_parts), **registry.expression}
