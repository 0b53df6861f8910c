from __future__ import annotations

import pytest

from dynoschema_py import (
    BooleanField,
    DateField,
    ListField,
    MapField,
    MappedListField,
    NumberField,
    SchemaDefinitionError,
    SlugifyOptions,
    StringField,
    UntypedField,
    parse_field_schema,
    parse_schema,
)


def test_parse_field_schema_type_aliases() -> None:
    assert isinstance(parse_field_schema({"type": "S"}), StringField)
    assert isinstance(parse_field_schema({"type": "String"}), StringField)
    assert isinstance(parse_field_schema({"type": "N"}), NumberField)
    assert isinstance(parse_field_schema({"type": "BOOL"}), BooleanField)
    assert isinstance(parse_field_schema({"type": "Date"}), DateField)
    assert isinstance(parse_field_schema({"type": "L"}), ListField)
    assert isinstance(parse_field_schema({"type": "M"}), MapField)
    assert isinstance(parse_field_schema({}), UntypedField)


def test_parse_field_schema_accepts_camel_case_options() -> None:
    schema = parse_field_schema(
        {
            "type": "MappedList",
            "keyAttribute": "id",
            "onlyAllowDefinedAttributes": True,
            "attributes": {"name": {"type": "S", "invalidCharacters": "$"}},
        }
    )

    assert isinstance(schema, MappedListField)
    assert schema.key_attribute == "id"
    assert schema.only_allow_defined_attributes is True
    assert schema.attributes == {"name": StringField(invalid_characters="$")}


def test_parse_field_schema_passes_instances_through() -> None:
    field = NumberField(integer=True)
    assert parse_field_schema(field) is field


def test_parse_field_schema_slugify_options() -> None:
    schema = parse_field_schema({"type": "S", "slugify": {"remove": "[.]", "charMap": {"&": "n"}}})
    assert isinstance(schema, StringField)
    assert schema.slugify == SlugifyOptions(remove="[.]", char_map={"&": "n"})


def test_enum_is_frozen_to_a_tuple() -> None:
    assert StringField(enum=["a", "b"]).enum == ("a", "b")  # type: ignore[arg-type]
    assert parse_field_schema({"type": "S", "enum": ["a"]}).enum == ("a",)  # type: ignore[attr-defined]


@pytest.mark.parametrize(
    "raw",
    [
        {"type": "Binary"},
        {"type": "S", "integer": True},
        {"type": "Date", "dateFormat": "RFC-2822"},
        {"type": "S", "format": "("},
        {"type": "MappedList"},
        {"type": "S", "slugify": "yes"},
        "S",
    ],
)
def test_invalid_field_schemas_raise(raw: object) -> None:
    with pytest.raises(SchemaDefinitionError):
        parse_field_schema(raw)  # type: ignore[arg-type]


def test_schema_definition_errors_are_value_errors() -> None:
    with pytest.raises(ValueError):
        parse_schema({"a": {"type": "nope"}})


def test_key_fields_are_required_and_constant() -> None:
    primary = StringField(primary=True)
    assert primary.is_required and primary.is_constant

    sort = NumberField(sort=True)
    assert sort.is_required and sort.is_constant

    plain = StringField()
    assert not plain.is_required and not plain.is_constant
