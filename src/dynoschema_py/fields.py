from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any, Literal

from .converters import DATE_CONVERTERS, Process
from .errors import SchemaDefinitionError

type DateFormat = Literal["ISO-8601", "Timestamp"]


@dataclass(frozen=True)
class SlugifyOptions:
    replacement: str = "-"
    remove: re.Pattern[str] | str | None = None
    lower: bool = False
    char_map: Mapping[str, str] | None = None


@dataclass(frozen=True, kw_only=True)
class FieldSchema:
    required: bool = False
    constant: bool = False
    primary: bool = False
    sort: bool = False
    default: Any = None
    process: Process | None = None

    @property
    def is_required(self) -> bool:
        return self.required or self.primary or self.sort

    @property
    def is_constant(self) -> bool:
        return self.constant or self.primary or self.sort


@dataclass(frozen=True, kw_only=True)
class UntypedField(FieldSchema):
    pass


@dataclass(frozen=True, kw_only=True)
class BooleanField(FieldSchema):
    pass


@dataclass(frozen=True, kw_only=True)
class NumberField(FieldSchema):
    integer: bool = False


@dataclass(frozen=True, kw_only=True)
class StringField(FieldSchema):
    enum: tuple[str, ...] | None = None
    invalid_characters: str | None = None
    format: re.Pattern[str] | str | None = None
    slugify: bool | SlugifyOptions = False

    def __post_init__(self) -> None:
        if self.enum is not None and not isinstance(self.enum, tuple):
            object.__setattr__(self, "enum", tuple(self.enum))
        if isinstance(self.format, str):
            try:
                re.compile(self.format)
            except re.error as err:
                raise SchemaDefinitionError(f"invalid format pattern {self.format!r}: {err}") from err


@dataclass(frozen=True, kw_only=True)
class DateField(FieldSchema):
    date_format: DateFormat = "ISO-8601"

    def __post_init__(self) -> None:
        if self.date_format not in DATE_CONVERTERS:
            raise SchemaDefinitionError(f"unsupported date_format: {self.date_format!r}")


@dataclass(frozen=True, kw_only=True)
class MapField(FieldSchema):
    attributes: Mapping[str, FieldSchema] | None = None
    only_allow_defined_attributes: bool = False


@dataclass(frozen=True, kw_only=True)
class ListField(FieldSchema):
    attributes: Mapping[str, FieldSchema] | None = None
    only_allow_defined_attributes: bool = False


@dataclass(frozen=True, kw_only=True)
class MappedListField(FieldSchema):
    key_attribute: str
    attributes: Mapping[str, FieldSchema] | None = None
    only_allow_defined_attributes: bool = False

    def __post_init__(self) -> None:
        if not self.key_attribute:
            raise SchemaDefinitionError("MappedList fields require a key_attribute")


@dataclass(frozen=True, kw_only=True)
class MultiTypeField(FieldSchema):
    """A field whose value may take any of several types.

    ``schemas`` maps a type code (``S``, ``N``, ``BOOL``, ``M``, ``L`` or their
    long names) to the schema used for values of that type. Mapping entries are
    parsed as if they declared that type themselves.
    """

    schemas: Mapping[str, FieldSchema | Mapping[str, Any]]

    def __post_init__(self) -> None:
        if not isinstance(self.schemas, Mapping) or not self.schemas:
            raise SchemaDefinitionError("Multiple fields require at least one schema")
        normalized: dict[str, FieldSchema] = {}
        for code, raw in self.schemas.items():
            canonical = MULTI_TYPE_CODES.get(code)
            if canonical is None:
                raise SchemaDefinitionError(f"unsupported type for a Multiple field: {code!r}")
            schema = parse_field_schema({**raw, "type": canonical} if isinstance(raw, Mapping) else raw)
            if type(schema) is not FIELD_TYPES[canonical]:
                raise SchemaDefinitionError(
                    f"schema for {code!r} must be a {FIELD_TYPES[canonical].__name__}, got {type(schema).__name__}"
                )
            normalized[canonical] = schema
        object.__setattr__(self, "schemas", normalized)


MULTI_TYPE_CODES = {
    "S": "S",
    "String": "S",
    "N": "N",
    "Number": "N",
    "BOOL": "BOOL",
    "Boolean": "BOOL",
    "M": "M",
    "Map": "M",
    "L": "L",
    "List": "L",
}

FIELD_TYPES: dict[str, type[FieldSchema]] = {
    "S": StringField,
    "String": StringField,
    "N": NumberField,
    "Number": NumberField,
    "BOOL": BooleanField,
    "Boolean": BooleanField,
    "Date": DateField,
    "L": ListField,
    "List": ListField,
    "M": MapField,
    "Map": MapField,
    "MappedList": MappedListField,
    "Multiple": MultiTypeField,
    "untyped": UntypedField,
}

_OPTION_ALIASES = {
    "invalidCharacters": "invalid_characters",
    "dateFormat": "date_format",
    "keyAttribute": "key_attribute",
    "onlyAllowDefinedAttributes": "only_allow_defined_attributes",
    "charMap": "char_map",
}


def _option_name(raw: str) -> str:
    return _OPTION_ALIASES.get(raw, raw)


def _parse_slugify(raw: Any) -> bool | SlugifyOptions:
    if isinstance(raw, (bool, SlugifyOptions)):
        return raw
    if isinstance(raw, Mapping):
        options = {_option_name(k): v for k, v in raw.items()}
        try:
            return SlugifyOptions(**options)
        except TypeError as err:
            raise SchemaDefinitionError(f"invalid slugify options: {err}") from err
    raise SchemaDefinitionError(f"invalid slugify options: {raw!r}")


def parse_field_schema(raw: FieldSchema | Mapping[str, Any]) -> FieldSchema:
    """Compiles one declarative field description into its FieldSchema variant.

    ``raw`` is either a FieldSchema instance or a mapping such as
    ``{"type": "S", "required": True}``. A missing ``type`` yields an untyped
    field.
    """
    if isinstance(raw, FieldSchema):
        return raw
    if not isinstance(raw, Mapping):
        raise SchemaDefinitionError(f"field schema must be a mapping, got {type(raw).__name__}")

    options = {_option_name(k): v for k, v in raw.items()}
    type_name = options.pop("type", "untyped")
    cls = FIELD_TYPES.get(type_name)
    if cls is None:
        raise SchemaDefinitionError(f"unsupported field type: {type_name!r}")

    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(options) - allowed)
    if unknown:
        raise SchemaDefinitionError(f"unsupported options for {type_name} field: {', '.join(unknown)}")

    if "attributes" in options and options["attributes"] is not None:
        options["attributes"] = parse_schema(options["attributes"])
    if "slugify" in options:
        options["slugify"] = _parse_slugify(options["slugify"])
    if options.get("enum") is not None:
        options["enum"] = tuple(options["enum"])

    try:
        return cls(**options)
    except TypeError as err:
        raise SchemaDefinitionError(f"invalid {type_name} field: {err}") from err


def parse_schema(raw: Mapping[str, FieldSchema | Mapping[str, Any]]) -> dict[str, FieldSchema]:
    if not isinstance(raw, Mapping):
        raise SchemaDefinitionError("schema must be a mapping of field name to field schema")
    return {name: parse_field_schema(value) for name, value in raw.items()}


def nested_attributes(schema: FieldSchema) -> dict[str, FieldSchema]:
    attributes = getattr(schema, "attributes", None)
    return parse_schema(attributes) if attributes else {}
