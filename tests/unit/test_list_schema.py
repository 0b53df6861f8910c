from __future__ import annotations

from datetime import UTC, datetime

from dynoschema_py import DateField, ListField, NumberField, StringField, UpdateBody, build_node


def _events():
    return build_node(
        "events",
        ListField(
            attributes={
                "kind": StringField(required=True, enum=("open", "close")),
                "at": DateField(date_format="Timestamp"),
            }
        ),
    )


def test_list_value_type_is_object() -> None:
    node = build_node("tags", ListField())
    assert node.validate_value(["a", 1]) == []
    assert node.validate_value("a") == ['Key "tags" is expected to be of type object but got string.']


def test_map_elements_are_validated() -> None:
    node = _events()
    assert node.validate_value([{"kind": "open"}, {"kind": "jump"}, {}, "loose"]) == [
        'Key "kind" is not one of the values "open, close".',
        'Key "kind" is required but is not defined.',
    ]


def test_map_elements_are_converted() -> None:
    node = _events()
    at = datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC)

    wire = node.convert_to_wire({"events": [{"kind": "open", "at": at}, "loose"]})
    assert wire == {"events": [{"kind": "open", "at": 1000}, "loose"]}
    assert node.convert_from_wire(wire) == {"events": [{"kind": "open", "at": at}, "loose"]}


def test_append_and_prepend_items_are_validated_and_converted() -> None:
    node = _events()
    at = datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC)

    bad = UpdateBody(append={"events": [{"kind": "jump"}]}, prepend={"events": [{}]})
    assert node.validate_update_body(bad) == [
        'Key "kind" is not one of the values "open, close".',
        'Key "kind" is required but is not defined.',
    ]

    body = node.convert_update_body_to_wire(UpdateBody(append={"events": [{"kind": "open", "at": at}]}))
    assert body.append == {"events": [{"kind": "open", "at": 1000}]}


def test_list_without_attributes_passes_items_through() -> None:
    node = build_node("scores", ListField(process=lambda items: [n * 2 for n in items]))
    assert node.convert_to_wire({"scores": [1, 2]}) == {"scores": [2, 4]}

    numbers = build_node("n", NumberField())
    assert numbers.convert_update_body_to_wire(UpdateBody(append={"n": [1]})).append == {"n": [1]}
