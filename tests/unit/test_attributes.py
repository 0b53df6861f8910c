from __future__ import annotations

import pytest

from dynoschema_py import AttributeRegistry


def test_add_name_mints_a_token_per_call() -> None:
    registry = AttributeRegistry()

    assert registry.add_name("a") == "#NC0"
    assert registry.add_name("a") == "#NC1"
    assert registry.names == {"#NC0": "a", "#NC1": "a"}


def test_add_name_reuses_tokens_when_asked() -> None:
    registry = AttributeRegistry(reuse_names=True)

    assert registry.add_name("a") == "#NC0"
    assert registry.add_name("b") == "#NC1"
    assert registry.add_name("a") == "#NC0"
    assert registry.names == {"#NC0": "a", "#NC1": "b"}


def test_add_name_splits_dotted_paths_and_keeps_list_indexes() -> None:
    registry = AttributeRegistry()

    assert registry.add_name("outer.inner") == "#NC0.#NC1"
    assert registry.add_name("items[2].name") == "#NC2[2].#NC3"
    assert registry.names == {"#NC0": "outer", "#NC1": "inner", "#NC2": "items", "#NC3": "name"}


def test_add_value_never_dedupes() -> None:
    registry = AttributeRegistry(reuse_names=True)

    assert registry.add_value(5) == ":VC0"
    assert registry.add_value(5) == ":VC1"
    assert registry.values == {":VC0": 5, ":VC1": 5}


def test_expression_omits_empty_maps() -> None:
    registry = AttributeRegistry()
    assert registry.expression == {}

    registry.add_name("a")
    assert registry.expression == {"ExpressionAttributeNames": {"#NC0": "a"}}

    registry.add_value(1)
    assert registry.expression == {
        "ExpressionAttributeNames": {"#NC0": "a"},
        "ExpressionAttributeValues": {":VC0": 1},
    }


def test_merge_renumbers_foreign_tokens_without_chaining() -> None:
    registry = AttributeRegistry()
    registry.add_name("local")
    registry.add_value("mine")

    foreign = {
        "ExpressionAttributeNames": {"#NC0": "x", "#NC1": "y"},
        "ExpressionAttributeValues": {":VC0": 1, ":VC1": 2},
    }
    translation = registry.merge(foreign)

    assert translation.names == {"#NC0": "#NC1", "#NC1": "#NC2"}
    assert translation.values == {":VC0": ":VC1", ":VC1": ":VC2"}
    assert translation.apply("#NC0=:VC0 AND #NC1=:VC1") == "#NC1=:VC1 AND #NC2=:VC2"
    assert registry.names == {"#NC0": "local", "#NC1": "x", "#NC2": "y"}
    assert registry.values == {":VC0": "mine", ":VC1": 1, ":VC2": 2}


def test_merge_leaves_unknown_tokens_alone() -> None:
    registry = AttributeRegistry()
    translation = registry.merge({"ExpressionAttributeNames": {"#NC0": "x"}})

    assert translation.apply("#NC0 = :other") == "#NC0 = :other"
    assert translation.apply("#NC10") == "#NC10"


def test_merge_rejects_dotted_foreign_names() -> None:
    registry = AttributeRegistry()
    with pytest.raises(ValueError, match="single path segment"):
        registry.merge({"ExpressionAttributeNames": {"#NC0": "a.b"}})


def test_registry_rejects_bad_prefixes() -> None:
    with pytest.raises(ValueError, match="name_prefix"):
        AttributeRegistry(name_prefix="NC")
