from __future__ import annotations

from dynoschema_py import index, scan, with_condition


def test_sequential_clauses_join_in_call_order() -> None:
    query = scan("a").equals(1).and_("b").equals(2).query()

    assert query == {
        "FilterExpression": "#NC0=:VC0 AND #NC1=:VC1",
        "ExpressionAttributeNames": {"#NC0": "a", "#NC1": "b"},
        "ExpressionAttributeValues": {":VC0": 1, ":VC1": 2},
    }


def test_or_and_repeated_names_reuse_the_first_token() -> None:
    query = scan("value1").equals(5).or_("value1").equals(6).or_("value1").equals("A string").query()

    assert query["FilterExpression"] == "#NC0=:VC0 OR #NC0=:VC1 OR #NC0=:VC2"
    assert query["ExpressionAttributeNames"] == {"#NC0": "value1"}
    assert query["ExpressionAttributeValues"] == {":VC0": 5, ":VC1": 6, ":VC2": "A string"}


def test_equals_any_ors_each_value_on_one_name() -> None:
    query = scan("a").equals_any([1, 2]).query()

    assert query["FilterExpression"] == "#NC0=:VC0 OR #NC0=:VC1"
    assert query["ExpressionAttributeNames"] == {"#NC0": "a"}
    assert query["ExpressionAttributeValues"] == {":VC0": 1, ":VC1": 2}


def test_singleton_and_scalar_operands_emit_one_comparison() -> None:
    assert scan("a").equals_any(5).query()["FilterExpression"] == "#NC0=:VC0"
    assert scan("a").equals_any([5]).query()["FilterExpression"] == "#NC0=:VC0"
    assert scan("a").contains_any("x").query()["FilterExpression"] == "contains(#NC0,:VC0)"
    assert scan("a").does_not_equal_all(5).query()["FilterExpression"] == "#NC0<>:VC0"


def test_empty_operand_lists_add_no_clause() -> None:
    assert scan("a").equals_any([]).query() == {}
    assert scan("a").contains_any([]).query() == {}

    query = scan("a").equals(1).and_("b").does_not_equal_all([]).or_("c").equals(2).query()
    assert query["FilterExpression"] == "#NC0=:VC0 OR #NC1=:VC1"
    assert query["ExpressionAttributeNames"] == {"#NC0": "a", "#NC1": "c"}


def test_does_not_equal_all_ands_each_value() -> None:
    query = scan("value1").does_not_equal_all([5, 6, 7, 8]).query()

    assert query["FilterExpression"] == "#NC0<>:VC0 AND #NC0<>:VC1 AND #NC0<>:VC2 AND #NC0<>:VC3"
    assert query["ExpressionAttributeValues"] == {":VC0": 5, ":VC1": 6, ":VC2": 7, ":VC3": 8}


def test_does_not_equal_and_contains() -> None:
    assert scan("a").does_not_equal(5).query()["FilterExpression"] == "#NC0<>:VC0"
    query = scan("param1").contains_any(["Value1", "Value2", "Value3"]).query()
    assert query["FilterExpression"] == "contains(#NC0,:VC0) OR contains(#NC0,:VC1) OR contains(#NC0,:VC2)"


def test_exists_predicates_have_no_values() -> None:
    query = scan("value1").exists().query()
    assert query == {
        "FilterExpression": "attribute_exists(#NC0)",
        "ExpressionAttributeNames": {"#NC0": "value1"},
    }

    query = scan("value1").does_not_exist().and_("value1").equals(5).query()
    assert query["FilterExpression"] == "attribute_not_exists(#NC0) AND #NC0=:VC0"


def test_nested_paths_are_split_per_segment() -> None:
    query = scan("nested").exists().and_("nested.value1").exists().query()

    assert query["FilterExpression"] == "attribute_exists(#NC0) AND attribute_exists(#NC0.#NC1)"
    assert query["ExpressionAttributeNames"] == {"#NC0": "nested", "#NC1": "value1"}


def test_is_between() -> None:
    query = scan("param1").is_between(1, 2).query()

    assert query["FilterExpression"] == "#NC0 BETWEEN :VC0 AND :VC1"
    assert query["ExpressionAttributeValues"] == {":VC0": 1, ":VC1": 2}


def test_and_none_is_a_no_op() -> None:
    query = scan("param1").equals(5).or_(None).query()
    assert query["FilterExpression"] == "#NC0=:VC0"


def test_and_with_prior_expression_merges_and_parenthesizes() -> None:
    first = scan("param1").equals(5).and_("param2").equals(6).and_("param3").exists().query()
    second = scan("param3").equals(7).and_(first).query()

    assert second["FilterExpression"] == "#NC0=:VC0 AND (#NC1=:VC1 AND #NC2=:VC2 AND attribute_exists(#NC0))"
    assert second["ExpressionAttributeNames"] == {"#NC0": "param3", "#NC1": "param1", "#NC2": "param2"}
    assert second["ExpressionAttributeValues"] == {":VC0": 7, ":VC1": 5, ":VC2": 6}


def test_or_with_prior_expression_without_parentheses() -> None:
    first = scan("b").equals(2).query()
    second = scan("a").equals(1).or_(first, inclusive=False).query()

    assert second["FilterExpression"] == "#NC0=:VC0 OR #NC1=:VC1"


def test_scan_seeded_from_prior_expression() -> None:
    first = scan("param1").contains("Value1").and_("param2").equals("Value2").query()

    plain = scan(first).or_("param2").equals(3).query()
    assert plain["FilterExpression"] == "contains(#NC0,:VC0) AND #NC1=:VC1 OR #NC1=:VC2"
    assert plain["ExpressionAttributeValues"] == {":VC0": "Value1", ":VC1": "Value2", ":VC2": 3}

    inclusive = scan(first, True).or_("param2").equals(3).query()
    assert inclusive["FilterExpression"] == "(contains(#NC0,:VC0) AND #NC1=:VC1) OR #NC1=:VC2"


def test_with_condition_produces_condition_expression() -> None:
    first = (
        with_condition("param1")
        .contains_any(["Value1", "Value2", "Value3"])
        .and_("param2")
        .equals(2)
        .or_("param3")
        .does_not_exist()
        .query()
    )
    assert first["ConditionExpression"] == (
        "contains(#NC0,:VC0) OR contains(#NC0,:VC1) OR contains(#NC0,:VC2) AND #NC1=:VC3 OR attribute_not_exists(#NC2)"
    )
    assert "FilterExpression" not in first

    second = with_condition(first, True).or_("param1").equals(5).query()
    assert second["ConditionExpression"] == (
        "(contains(#NC0,:VC0) OR contains(#NC0,:VC1) OR contains(#NC0,:VC2) AND #NC1=:VC3 "
        "OR attribute_not_exists(#NC2)) OR #NC0=:VC4"
    )
    assert second["ExpressionAttributeValues"][":VC4"] == 5


def test_builders_do_not_share_state() -> None:
    a = scan("x").equals(1)
    b = scan("y").equals(2)

    assert a.query()["ExpressionAttributeNames"] == {"#NC0": "x"}
    assert b.query()["ExpressionAttributeNames"] == {"#NC0": "y"}


def test_index_builds_key_condition() -> None:
    query = index("TestPartitionKey", "TestIndex").equals("Hello").query()
    assert query == {
        "IndexName": "TestIndex",
        "KeyConditionExpression": "#NC0=:VC0",
        "ExpressionAttributeNames": {"#NC0": "TestPartitionKey"},
        "ExpressionAttributeValues": {":VC0": "Hello"},
    }

    assert "IndexName" not in index("TestPartitionKey").equals("Hello").query()
