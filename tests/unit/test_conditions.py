"""Unit tests for condition parsing and evaluation."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import TypeAdapter

from workflow_orchestrator.workflow.conditions import (
    And,
    Compare,
    CompareOp,
    ConditionSyntaxError,
    Expression,
    FieldRef,
    Not,
    Value,
    evaluate_condition,
    parse_condition,
)


def _check(text: str, data: dict[str, Any]) -> bool:
    return evaluate_condition(parse_condition(text), data)


def test_greater_than_against_data() -> None:
    assert _check("x > 5", {"x": 10}) is True
    assert _check("x > 5", {"x": 1}) is False


def test_parse_produces_comparison_tree() -> None:
    expr = parse_condition("x > 5")

    assert expr == Compare(op=CompareOp.GT, left=FieldRef(path=["x"]), right=Value(value=5))


def test_data_prefix_and_strict_equality_are_accepted() -> None:
    assert _check('data.priority === "high"', {"priority": "high"}) is True
    assert _check('data.priority === "high"', {"priority": "normal"}) is False
    assert _check("priority !== 'low'", {"priority": "high"}) is True


@pytest.mark.parametrize(
    ("text", "data", "expected"),
    [
        ("a and b", {"a": True, "b": True}, True),
        ("a && b", {"a": True, "b": False}, False),
        ("a or b", {"a": False, "b": 1}, True),
        ("a || b", {}, False),
        ("not a", {"a": False}, True),
        ("!a", {"a": True}, False),
        ("not (a or b)", {"a": False, "b": False}, True),
        ("x >= 2 and x <= 4", {"x": 3}, True),
        ("x < 2 or x > 4", {"x": 3}, False),
        ("tag in ['vip', 'gold']", {"tag": "vip"}, True),
        ("tag not in ['vip', 'gold']", {"tag": "vip"}, False),
        ("'urgent' in tags", {"tags": ["urgent", "billing"]}, True),
        ("customer.tier == 'gold'", {"customer": {"tier": "gold"}}, True),
        ("items[0] == 3.5", {"items": [3.5, 1]}, True),
        ("missing == null", {}, True),
        ("flag == true", {"flag": True}, True),
    ],
)
def test_boolean_and_comparison_operators(
    text: str, data: dict[str, Any], expected: bool
) -> None:
    assert _check(text, data) is expected


def test_and_binds_tighter_than_or() -> None:
    expr = parse_condition("a or b and c")

    assert evaluate_condition(expr, {"a": True, "b": False, "c": False}) is True
    assert evaluate_condition(expr, {"a": False, "b": True, "c": False}) is False


def test_ordering_against_missing_field_is_false() -> None:
    assert _check("x > 5", {}) is False
    assert _check("x < 5", {"x": "text"}) is False


def test_structured_expression_is_accepted() -> None:
    adapter: TypeAdapter[Any] = TypeAdapter(Expression)
    expr = adapter.validate_python(
        {
            "kind": "and",
            "items": [
                {
                    "kind": "compare",
                    "op": ">",
                    "left": {"kind": "field", "path": ["score"]},
                    "right": {"kind": "value", "value": 50},
                },
                {"kind": "not", "operand": {"kind": "field", "path": ["blocked"]}},
            ],
        }
    )

    assert isinstance(expr, And)
    assert isinstance(expr.items[1], Not)
    assert evaluate_condition(expr, {"score": 80, "blocked": False}) is True
    assert evaluate_condition(expr, {"score": 80, "blocked": True}) is False


@pytest.mark.parametrize(
    "text",
    [
        "",
        "x >",
        "x > > 5",
        "(x > 5",
        "x = 5",
        "x > 5 extra",
        "import os; os.system('ls')",
        "a.",
        "[x]",
    ],
)
def test_malformed_conditions_are_rejected(text: str) -> None:
    with pytest.raises(ConditionSyntaxError):
        parse_condition(text)


def test_code_is_never_executed() -> None:
    expr = parse_condition("__import__ == 'os'")

    assert evaluate_condition(expr, {}) is False
