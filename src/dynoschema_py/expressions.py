from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal, overload

from .attributes import AttributeRegistry

type ExpressionKind = Literal["FilterExpression", "ConditionExpression", "KeyConditionExpression"]

EXPRESSION_KEYS: tuple[ExpressionKind, ...] = (
    "FilterExpression",
    "ConditionExpression",
    "KeyConditionExpression",
)


def expression_text(expression: Mapping[str, Any]) -> str | None:
    for key in EXPRESSION_KEYS:
        text = expression.get(key)
        if text:
            return str(text)
    return None


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


class ExpressionBuilder:
    """Assembles one filter, condition or key-condition expression.

    Clauses are joined strictly in call order; no precedence is implied beyond
    the parentheses that embedded expressions bring with them.
    """

    def __init__(
        self,
        kind: ExpressionKind = "FilterExpression",
        *,
        registry: AttributeRegistry | None = None,
        index_name: str | None = None,
    ) -> None:
        self._kind = kind
        self._registry = registry or AttributeRegistry(reuse_names=True)
        self._index_name = index_name
        self._text = ""

    @property
    def registry(self) -> AttributeRegistry:
        return self._registry

    def field(self, name: str) -> FieldCursor:
        return FieldCursor(self, name, "")

    def embed(self, prior: Mapping[str, Any], *, inclusive: bool = False) -> Conjunction:
        self._embed(prior, "", inclusive)
        return Conjunction(self)

    def query(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self._index_name:
            out["IndexName"] = self._index_name
        if self._text:
            out[self._kind] = self._text
        out.update(self._registry.expression)
        return out

    def _append(self, joiner: str, clause: str) -> None:
        if self._text and joiner:
            self._text += f" {joiner} {clause}"
        else:
            self._text += clause

    def _embed(self, prior: Mapping[str, Any], joiner: str, inclusive: bool) -> None:
        text = expression_text(prior)
        translation = self._registry.merge(prior)
        if text is None:
            return
        text = translation.apply(text)
        self._append(joiner, f"({text})" if inclusive else text)


class FieldCursor:
    def __init__(self, builder: ExpressionBuilder, name: str, joiner: str) -> None:
        self._builder = builder
        self._name = name
        self._joiner = joiner

    def equals(self, value: Any) -> Conjunction:
        return self._compare("=", [value], "OR")

    def does_not_equal(self, value: Any) -> Conjunction:
        return self._compare("<>", [value], "AND")

    def equals_any(self, values: Any) -> Conjunction:
        return self._compare("=", _as_list(values), "OR")

    def does_not_equal_all(self, values: Any) -> Conjunction:
        return self._compare("<>", _as_list(values), "AND")

    def contains(self, value: Any) -> Conjunction:
        return self._contains([value])

    def contains_any(self, values: Any) -> Conjunction:
        return self._contains(_as_list(values))

    def is_between(self, low: Any, high: Any) -> Conjunction:
        registry = self._builder.registry
        name = registry.add_name(self._name)
        clause = f"{name} BETWEEN {registry.add_value(low)} AND {registry.add_value(high)}"
        return self._finish(clause)

    def exists(self) -> Conjunction:
        return self._finish(f"attribute_exists({self._builder.registry.add_name(self._name)})")

    def does_not_exist(self) -> Conjunction:
        return self._finish(f"attribute_not_exists({self._builder.registry.add_name(self._name)})")

    def _compare(self, operator: str, values: list[Any], joiner: str) -> Conjunction:
        registry = self._builder.registry
        clauses = [f"{registry.add_name(self._name)}{operator}{registry.add_value(v)}" for v in values]
        return self._finish(f" {joiner} ".join(clauses))

    def _contains(self, values: list[Any]) -> Conjunction:
        registry = self._builder.registry
        clauses = [f"contains({registry.add_name(self._name)},{registry.add_value(v)})" for v in values]
        return self._finish(" OR ".join(clauses))

    def _finish(self, clause: str) -> Conjunction:
        # An empty operand list leaves the expression unchanged.
        if clause:
            self._builder._append(self._joiner, clause)
        return Conjunction(self._builder)


class Conjunction:
    def __init__(self, builder: ExpressionBuilder) -> None:
        self._builder = builder

    @overload
    def and_(self, other: str) -> FieldCursor: ...

    @overload
    def and_(self, other: Mapping[str, Any] | None, *, inclusive: bool = True) -> Conjunction: ...

    def and_(self, other: Any = None, *, inclusive: bool = True) -> Any:
        return self._join("AND", other, inclusive)

    @overload
    def or_(self, other: str) -> FieldCursor: ...

    @overload
    def or_(self, other: Mapping[str, Any] | None, *, inclusive: bool = True) -> Conjunction: ...

    def or_(self, other: Any = None, *, inclusive: bool = True) -> Any:
        return self._join("OR", other, inclusive)

    def query(self) -> dict[str, Any]:
        return self._builder.query()

    def _join(self, joiner: str, other: Any, inclusive: bool) -> FieldCursor | Conjunction:
        if other is None:
            return self
        if isinstance(other, str):
            return FieldCursor(self._builder, other, joiner)
        self._builder._embed(other, joiner, inclusive)
        return self


def _start(kind: ExpressionKind, start: str | Mapping[str, Any], inclusive: bool) -> Any:
    builder = ExpressionBuilder(kind)
    if isinstance(start, str):
        return builder.field(start)
    return builder.embed(start, inclusive=inclusive)


@overload
def scan(start: str) -> FieldCursor: ...


@overload
def scan(start: Mapping[str, Any], inclusive: bool = False) -> Conjunction: ...


def scan(start: Any, inclusive: bool = False) -> Any:
    return _start("FilterExpression", start, inclusive)


@overload
def with_condition(start: str) -> FieldCursor: ...


@overload
def with_condition(start: Mapping[str, Any], inclusive: bool = False) -> Conjunction: ...


def with_condition(start: Any, inclusive: bool = False) -> Any:
    return _start("ConditionExpression", start, inclusive)


def index(partition_key: str, index_name: str | None = None) -> FieldCursor:
    return ExpressionBuilder("KeyConditionExpression", index_name=index_name).field(partition_key)
