from __future__ import annotations

import re
from collections.abc import Callable, Mapping, Sequence
from decimal import Decimal
from typing import Any, Literal

from .converters import DATE_CONVERTERS, Converter, as_converters, is_valid_date
from .errors import SchemaDefinitionError
from .fields import (
    BooleanField,
    DateField,
    FieldSchema,
    ListField,
    MapField,
    MappedListField,
    MultiTypeField,
    NumberField,
    SlugifyOptions,
    StringField,
    UntypedField,
    nested_attributes,
)
from .slug import slugify
from .update_body import UpdateBody, path_touches

type ValueType = Literal["string", "number", "boolean", "object", "unknown"]
type ValueRule = Callable[[str, Any], Sequence[str]]


def type_name(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (int, float, Decimal)):
        return "number"
    if isinstance(value, (Mapping, list, tuple, set, frozenset)):
        return "object"
    return type(value).__name__


class NodeStrategy:
    """Structural behavior of a node. The base class is the leaf behavior."""

    def validate_put(self, node: SchemaNode, value: Any) -> list[str]:
        return []

    def validate_update(self, node: SchemaNode, body: UpdateBody) -> list[str]:
        return []

    def to_wire(self, node: SchemaNode, value: Any) -> Any:
        return value

    def from_wire(self, node: SchemaNode, value: Any) -> Any:
        return value

    def update_to_wire(self, node: SchemaNode, body: UpdateBody) -> UpdateBody:
        return body


LEAF = NodeStrategy()


class SchemaNode:
    """Validates and converts one field of a record.

    Nodes are built once and never mutated, so a tree can be shared by any
    number of concurrent validate/convert calls.
    """

    def __init__(
        self,
        name: str,
        schema: FieldSchema,
        *,
        value_type: ValueType = "unknown",
        converters: Sequence[Converter] = (),
        value_rules: Sequence[ValueRule] = (),
        strategy: NodeStrategy = LEAF,
    ) -> None:
        self.name = name
        self.schema = schema
        self.value_type: ValueType = value_type
        self.converters: tuple[Converter, ...] = tuple(converters)
        self.value_rules: tuple[ValueRule, ...] = tuple(value_rules)
        self.strategy = strategy

    @property
    def is_required(self) -> bool:
        return self.schema.is_required

    @property
    def is_constant(self) -> bool:
        return self.schema.is_constant

    def validate_value(self, value: Any) -> list[str]:
        if value is None:
            return []
        if self.value_type != "unknown" and type_name(value) != self.value_type:
            return [f'Key "{self.name}" is expected to be of type {self.value_type} but got {type_name(value)}.']

        errors: list[str] = []
        for rule in self.value_rules:
            errors.extend(rule(self.name, value))
        errors.extend(self.strategy.validate_put(self, value))
        return errors

    def validate_against_schema(self, obj: Mapping[str, Any]) -> list[str]:
        value = obj.get(self.name)
        if value is None:
            if self.is_required and self.schema.default is None:
                return [f'Key "{self.name}" is required but is not defined.']
            return []
        return self.validate_value(value)

    def validate_update_body(self, body: UpdateBody) -> list[str]:
        errors: list[str] = []
        if self.is_constant and self._touched_by(body):
            errors.append(f'Key "{self.name}" is constant and can not be modified.')
        if self.is_required and (
            (self.name in body.set and body.set[self.name] is None) or self.name in body.remove
        ):
            errors.append(f'Key "{self.name}" is required and can not be removed.')
        if self.name in body.set:
            errors.extend(self.validate_value(body.set[self.name]))
        errors.extend(self.strategy.validate_update(self, body))
        return errors

    def value_to_wire(self, value: Any) -> Any:
        for converter in self.converters:
            value = converter.to_wire(value)
        return value if value is None else self.strategy.to_wire(self, value)

    def value_from_wire(self, value: Any) -> Any:
        for converter in self.converters:
            value = converter.from_wire(value)
        return value if value is None else self.strategy.from_wire(self, value)

    def convert_to_wire(self, obj: Mapping[str, Any]) -> dict[str, Any]:
        present = self.name in obj
        value = self.value_to_wire(obj.get(self.name))
        if not present and value is None:
            return dict(obj)
        return {**obj, self.name: value}

    def convert_from_wire(self, obj: Mapping[str, Any]) -> dict[str, Any]:
        if self.name not in obj:
            return dict(obj)
        return {**obj, self.name: self.value_from_wire(obj[self.name])}

    def convert_update_body_to_wire(self, body: UpdateBody) -> UpdateBody:
        body = self.strategy.update_to_wire(self, body)
        if self.name in body.set:
            body = body.with_changes(set=self.convert_to_wire(body.set))
        return body

    def _touched_by(self, body: UpdateBody) -> bool:
        paths = [*body.set, *body.append, *body.prepend, *body.remove]
        return any(path_touches(path, self.name) for path in paths)

    def __repr__(self) -> str:
        return f"SchemaNode(name={self.name!r}, schema={type(self.schema).__name__})"


def _default_converter(default: Any) -> Converter:
    def to_wire(value: Any) -> Any:
        if value is not None:
            return value
        return default() if callable(default) else default

    return Converter(to_wire=to_wire)


def _base_converters(schema: FieldSchema) -> list[Converter]:
    converters: list[Converter] = []
    if schema.default is not None:
        converters.append(_default_converter(schema.default))
    converters.extend(as_converters(schema.process))
    return converters


def _enum_rule(allowed: tuple[str, ...]) -> ValueRule:
    def rule(name: str, value: Any) -> list[str]:
        if value in allowed:
            return []
        return [f'Key "{name}" is not one of the values "{", ".join(allowed)}".']

    return rule


def _invalid_characters_rule(invalid: str) -> ValueRule:
    def rule(name: str, value: Any) -> list[str]:
        if not isinstance(value, str):
            return []
        found = "".join(dict.fromkeys(ch for ch in value if ch in invalid))
        if not found:
            return []
        return [f'Key "{name}" contains invalid characters "{found}".']

    return rule


def _format_rule(pattern: re.Pattern[str] | str) -> ValueRule:
    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern

    def rule(name: str, value: Any) -> list[str]:
        if not isinstance(value, str) or compiled.fullmatch(value) is not None:
            return []
        return [f'Key "{name}" does not match the required format "{compiled.pattern}".']

    return rule


def _integer_rule(name: str, value: Any) -> list[str]:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return []
    if isinstance(value, int):
        return []
    if isinstance(value, float) and value.is_integer():
        return []
    if isinstance(value, Decimal) and value.is_finite() and value == value.to_integral_value():
        return []
    return [f'Key "{name}" is not an integer.']


def _date_rule(name: str, value: Any) -> list[str]:
    if value == "" or is_valid_date(value):
        return []
    return [f'Key "{name}" is not a valid date.']


def _slugify_converter(options: bool | SlugifyOptions) -> Converter:
    opts = options if isinstance(options, SlugifyOptions) else None

    def to_wire(value: Any) -> Any:
        if not isinstance(value, str):
            return value
        if opts is None:
            return slugify(value)
        return slugify(
            value,
            replacement=opts.replacement,
            remove=opts.remove,
            lower=opts.lower,
            char_map=opts.char_map,
        )

    return Converter(to_wire=to_wire)


def build_nodes(schema: Mapping[str, FieldSchema]) -> tuple[SchemaNode, ...]:
    return tuple(build_node(name, field_schema) for name, field_schema in schema.items())


def build_node(name: str, schema: FieldSchema) -> SchemaNode:
    from . import structural

    converters = _base_converters(schema)
    match schema:
        case StringField():
            rules: list[ValueRule] = []
            if schema.enum is not None:
                rules.append(_enum_rule(schema.enum))
            if schema.invalid_characters:
                rules.append(_invalid_characters_rule(schema.invalid_characters))
            if schema.format is not None:
                rules.append(_format_rule(schema.format))
            if schema.slugify:
                converters.append(_slugify_converter(schema.slugify))
            return SchemaNode(name, schema, value_type="string", converters=converters, value_rules=rules)
        case NumberField():
            rules = [_integer_rule] if schema.integer else []
            return SchemaNode(name, schema, value_type="number", converters=converters, value_rules=rules)
        case BooleanField():
            return SchemaNode(name, schema, value_type="boolean", converters=converters)
        case DateField():
            converters.append(DATE_CONVERTERS[schema.date_format])
            return SchemaNode(name, schema, converters=converters, value_rules=[_date_rule])
        case MapField():
            strategy = structural.MapStrategy(
                build_nodes(nested_attributes(schema)),
                only_allow_defined_attributes=schema.only_allow_defined_attributes,
            )
            return SchemaNode(name, schema, value_type="object", converters=converters, strategy=strategy)
        case ListField():
            element = structural.element_node(name, schema) if schema.attributes else None
            return SchemaNode(
                name,
                schema,
                value_type="object",
                converters=converters,
                strategy=structural.ListStrategy(element),
            )
        case MappedListField():
            converters.append(structural.mapped_list_converter(schema.key_attribute))
            return SchemaNode(
                name,
                schema,
                value_type="object",
                converters=converters,
                strategy=structural.MappedListStrategy(schema.key_attribute, structural.element_node(name, schema)),
            )
        case MultiTypeField():
            children = {code: build_node(name, child) for code, child in schema.schemas.items()}
            return SchemaNode(name, schema, converters=converters, strategy=structural.MultiTypeStrategy(children))
        case UntypedField():
            return SchemaNode(name, schema, converters=converters)
        case _:
            raise SchemaDefinitionError(f"unsupported field schema for {name!r}: {type(schema).__name__}")
