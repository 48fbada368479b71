"""Answer validation limited to the sections a respondent actually visited."""

from collections.abc import Iterable
from typing import Any

from app.core.constants import MAX_LENGTH_MESSAGE, MIN_LENGTH_MESSAGE, REQUIRED_MESSAGE
from app.schemas.forms import FormDefinition, FormField


def is_empty_answer(value: Any) -> bool:
    """None, empty strings, and empty collections count as unanswered."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def effective_section_id(field: FormField, section_ids: Iterable[str]) -> str | None:
    """The field's section, or None when it has none or names a deleted one."""
    if field.section_id and field.section_id in set(section_ids):
        return field.section_id
    return None


def fields_in_scope(
    fields: list[FormField],
    visited_sections: Iterable[str],
    section_ids: Iterable[str] | None = None,
) -> list[FormField]:
    visited = set(visited_sections)
    known = set(section_ids) if section_ids is not None else None
    scoped: list[FormField] = []
    for field in fields:
        if not field.section_id:
            scoped.append(field)
        elif known is not None and field.section_id not in known:
            # Dangling section reference: treated like an unassigned field
            scoped.append(field)
        elif field.section_id in visited:
            scoped.append(field)
    return scoped


def validate_field(field: FormField, value: Any) -> str | None:
    if field.required and is_empty_answer(value):
        return REQUIRED_MESSAGE

    error: str | None = None
    if field.type == "text" and isinstance(value, str) and value and field.validation:
        min_length = field.validation.min_length
        max_length = field.validation.max_length
        if min_length and len(value) < min_length:
            error = MIN_LENGTH_MESSAGE.format(limit=min_length)
        if max_length and len(value) > max_length:
            error = MAX_LENGTH_MESSAGE.format(limit=max_length)
    return error


def validate_answers(
    fields: list[FormField],
    answers: dict[str, Any],
    visited_sections: Iterable[str],
    section_ids: Iterable[str] | None = None,
) -> dict[str, str]:
    """Map field id to error message for every violated constraint in scope.

    Sections the respondent was steered away from are never checked.
    """
    errors: dict[str, str] = {}
    for field in fields_in_scope(fields, visited_sections, section_ids):
        error = validate_field(field, answers.get(field.id))
        if error:
            errors[field.id] = error
    return errors


def validate_definition(
    definition: FormDefinition, answers: dict[str, Any], visited_sections: Iterable[str]
) -> dict[str, str]:
    section_ids = [section.id for section in definition.sections]
    return validate_answers(definition.fields, answers, visited_sections, section_ids)
