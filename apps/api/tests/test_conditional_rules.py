"""Tests for conditional branching rule resolution and pruning."""

from app.schemas.forms import FormField
from app.services.conditional_rules import (
    has_branching,
    is_rule_usable,
    prune_rules,
    resolve_rule,
    usable_rules,
)
from conftest import dropdown, field

SECTIONS = ["s1", "s2", "s3"]


def _field(data: dict) -> FormField:
    return FormField.model_validate(data)


def test_rule_needs_current_option_and_live_target():
    f = _field(
        dropdown(
            "d1",
            "s1",
            ["A", "B"],
            rules=[("A", "s2"), ("B", "gone"), ("C", "s3"), ("B", "end")],
        )
    )
    rules = f.rules

    assert is_rule_usable(f, rules[0], SECTIONS) is True
    assert is_rule_usable(f, rules[1], SECTIONS) is False
    assert is_rule_usable(f, rules[2], SECTIONS) is False
    assert is_rule_usable(f, rules[3], SECTIONS) is True
    assert [(r.answer, r.target_section_id) for r in usable_rules(f, SECTIONS)] == [
        ("A", "s2"),
        ("B", "end"),
    ]


def test_first_matching_rule_wins():
    f = _field(dropdown("d1", "s1", ["A"], rules=[("A", "s3"), ("A", "s2")]))
    assert resolve_rule(f, "A", SECTIONS).target_section_id == "s3"


def test_resolve_requires_dropdown_and_string_answer():
    text_field = _field(
        field(
            "t1",
            "s1",
            options=["A"],
            conditional_logic=[{"answer": "A", "target_section_id": "s2"}],
        )
    )
    d1 = _field(dropdown("d1", "s1", ["A"], rules=[("A", "s2")]))

    assert resolve_rule(text_field, "A", SECTIONS) is None
    assert resolve_rule(d1, ["A"], SECTIONS) is None
    assert resolve_rule(d1, None, SECTIONS) is None
    assert has_branching(text_field, SECTIONS) is False
    assert has_branching(d1, SECTIONS) is True


def test_bare_rule_list_is_accepted():
    f = _field(
        field(
            "d1",
            "s1",
            type="dropdown",
            options=["A"],
            conditional_logic=[{"answer": "A", "target_section_id": "s2"}],
        )
    )
    assert [r.answer for r in f.rules] == ["A"]


def test_prune_keeps_only_usable_rules():
    f = _field(dropdown("d1", "s1", ["A", "B"], rules=[("A", "s2"), ("Z", "s2"), ("B", "gone")]))

    pruned = prune_rules(f, SECTIONS)

    assert [(r.answer, r.target_section_id) for r in pruned.rules] == [("A", "s2")]
    assert len(f.rules) == 3


def test_prune_clears_logic_when_nothing_survives():
    f = _field(dropdown("d1", "s1", ["A"], rules=[("A", "gone")]))
    assert prune_rules(f, SECTIONS).conditional_logic is None


def test_prune_leaves_fields_without_logic_alone():
    f = _field(field("t1", "s1"))
    assert prune_rules(f, SECTIONS) is f
