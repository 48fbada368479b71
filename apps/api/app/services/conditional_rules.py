"""Conditional branching rules attached to dropdown fields.

A rule maps one dropdown answer to a target section id (or to the end of the
form). Rules go stale when the editor removes an option or deletes the target
section; stale rules are dropped when a form is saved and are never matched
while a respondent fills the form.
"""

from collections.abc import Iterable

from app.core.constants import END_OF_FORM
from app.schemas.forms import ConditionalLogic, ConditionalRule, FormField


def is_rule_usable(
    field: FormField, rule: ConditionalRule, section_ids: Iterable[str]
) -> bool:
    """True when the rule's answer is a current option and its target exists."""
    if rule.answer not in (field.options or []):
        return False
    if rule.target_section_id == END_OF_FORM:
        return True
    return rule.target_section_id in set(section_ids)


def usable_rules(field: FormField, section_ids: Iterable[str]) -> list[ConditionalRule]:
    ids = set(section_ids)
    return [rule for rule in field.rules if is_rule_usable(field, rule, ids)]


def has_branching(field: FormField, section_ids: Iterable[str]) -> bool:
    """Dropdowns with at least one usable rule drive navigation by their answer."""
    return field.type == "dropdown" and bool(usable_rules(field, section_ids))


def resolve_rule(
    field: FormField, answer: object, section_ids: Iterable[str]
) -> ConditionalRule | None:
    """Return the first usable rule matching ``answer``, or None.

    Duplicate answers are tolerated; list order decides.
    """
    if field.type != "dropdown" or not isinstance(answer, str):
        return None
    for rule in usable_rules(field, section_ids):
        if rule.answer == answer:
            return rule
    return None


def prune_rules(field: FormField, section_ids: Iterable[str]) -> FormField:
    """Return a copy of ``field`` keeping only usable rules."""
    if field.conditional_logic is None:
        return field
    kept = usable_rules(field, section_ids)
    logic = ConditionalLogic(conditions=kept) if kept else None
    return field.model_copy(update={"conditional_logic": logic})
