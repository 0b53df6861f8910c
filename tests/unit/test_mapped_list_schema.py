from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from dynoschema_py import (
    MAPPED_LIST_INDEX,
    DateField,
    MappedListField,
    StringField,
    UpdateBody,
    ValidationError,
    build_node,
)
from dynoschema_py.structural import mapped_list_converter

AT = datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC)


def _items(*, only_allow: bool = False):
    return build_node(
        "items",
        MappedListField(
            key_attribute="id",
            attributes={
                "name": StringField(required=True),
                "at": DateField(date_format="Timestamp"),
            },
            only_allow_defined_attributes=only_allow,
        ),
    )


def test_to_wire_keys_elements_and_records_positions() -> None:
    node = _items()
    wire = node.convert_to_wire({"items": [{"id": "a", "name": "x", "at": AT}, {"id": 2, "name": "y"}]})

    assert wire == {
        "items": {
            "a": {"id": "a", "name": "x", "at": 1000, MAPPED_LIST_INDEX: 0},
            "2": {"id": 2, "name": "y", MAPPED_LIST_INDEX: 1},
        }
    }


def test_from_wire_restores_order_and_strips_positions() -> None:
    node = _items()
    wire = {
        "items": {
            "x": {"id": "x", "name": "late"},
            "a": {"id": "a", "name": "second", MAPPED_LIST_INDEX: Decimal(1)},
            "b": {"id": "b", "name": "first", "at": Decimal(1000), MAPPED_LIST_INDEX: Decimal(0)},
        }
    }

    assert node.convert_from_wire(wire) == {
        "items": [
            {"id": "b", "name": "first", "at": AT},
            {"id": "a", "name": "second"},
            {"id": "x", "name": "late"},
        ]
    }


def test_round_trip_preserves_list() -> None:
    node = _items()
    items = [{"id": "b", "name": "1"}, {"id": "a", "name": "2"}, {"id": "c", "name": "3"}]
    assert node.convert_from_wire(node.convert_to_wire({"items": items})) == {"items": items}


def test_key_values_are_stringified() -> None:
    converter = mapped_list_converter("id")
    wire = converter.to_wire([{"id": True}, {"id": Decimal("7")}, {"id": 1.0}])
    assert list(wire) == ["true", "7", "1"]


def test_elements_are_validated() -> None:
    node = _items(only_allow=True)
    assert node.validate_value([{"id": "a", "name": "x"}]) == []
    assert node.validate_value([{"name": "x"}, {"id": "b"}, "loose", {"id": "c", "name": "n", "extra": 1}]) == [
        'Key "id" is required but is not defined.',
        'Key "name" is required but is not defined.',
        'Key "items" is expected to be of type object but got string.',
        'Map attribute "items" has forbidden keys "extra".',
    ]


def test_append_and_prepend_become_keyed_sets() -> None:
    node = _items()
    body = UpdateBody(
        append={"items": [{"id": "c", "name": "n", "at": AT}], "other": [1]},
        prepend={"items": [{"id": 4, "name": "m"}]},
    )

    converted = node.convert_update_body_to_wire(body)
    assert converted.set == {
        "items.c": {"id": "c", "name": "n", "at": 1000},
        "items.4": {"id": 4, "name": "m"},
    }
    assert converted.append == {"other": [1]}
    assert converted.prepend == {}


def test_existing_set_entries_win_over_appended_items() -> None:
    node = _items()
    body = UpdateBody(set={"items.c": {"id": "c", "name": "kept"}}, append={"items": [{"id": "c", "name": "lost"}]})

    assert node.convert_update_body_to_wire(body).set == {"items.c": {"id": "c", "name": "kept"}}


def test_dotted_element_paths_are_converted() -> None:
    node = _items()
    converted = node.convert_update_body_to_wire(UpdateBody(set={"items.c.at": AT, "items.c.name": "n"}))
    assert converted.set == {"items.c.at": 1000, "items.c.name": "n"}


def test_whole_list_set_is_converted() -> None:
    node = _items()
    converted = node.convert_update_body_to_wire(UpdateBody(set={"items": [{"id": "a", "name": "x"}]}))
    assert converted.set == {"items": {"a": {"id": "a", "name": "x", MAPPED_LIST_INDEX: 0}}}


def test_update_validation() -> None:
    node = _items()

    assert node.validate_update_body(UpdateBody(append={"items": [{"name": "n"}]})) == [
        'Key "id" is required but is not defined.'
    ]
    assert node.validate_update_body(UpdateBody(set={"items.c": "flat"})) == [
        'Key "items" is expected to be of type object but got string.'
    ]
    assert node.validate_update_body(UpdateBody(set={"items.c": {"id": "c"}})) == [
        'Key "name" is required but is not defined.'
    ]
    assert node.validate_update_body(UpdateBody(set={"items.c.name": None})) == [
        'Key "name" is required and can not be removed.'
    ]
    assert node.validate_update_body(UpdateBody(set={"items.c.name": "ok"})) == []


def test_append_rejects_element_keys_containing_dots() -> None:
    node = _items()
    body = UpdateBody(append={"items": [{"id": "a.b", "name": "x"}, {"id": "c", "name": "y"}]})

    assert node.validate_update_body(body) == [
        'Key "items" can not add an element whose "id" contains ".": "a.b".'
    ]
    with pytest.raises(ValidationError, match="a.b"):
        node.convert_update_body_to_wire(body)


def test_put_keeps_dotted_element_keys_as_map_keys() -> None:
    node = _items()
    wire = node.convert_to_wire({"items": [{"id": "a.b", "name": "x"}]})
    assert wire == {"items": {"a.b": {"id": "a.b", "name": "x", MAPPED_LIST_INDEX: 0}}}
    assert node.validate_value([{"id": "a.b", "name": "x"}]) == []
