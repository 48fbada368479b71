"""Respondent form-fill flow over stateless HTTP.

The client keeps the navigation state and answers and posts them back with
each event. This module turns the wire payloads into engine calls, runs the
scoped validator and the submission gate, and hands valid answers to the
submission service.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import Session

from app.core.structured_logging import build_log_context
from app.db.models import Form, FormSubmission
from app.schemas.forms import (
    FormDefinition,
    NavigationEvent,
    NavigationStatePayload,
    NavigationView,
)
from app.services import form_service, form_submission_service
from app.services import section_navigation as nav
from app.services.errors import (
    InvalidNavigationStateError,
    SubmissionNotAllowedError,
    SubmissionValidationError,
)
from app.services.scoped_validation import validate_definition

logger = logging.getLogger(__name__)


@dataclass
class FillResult:
    state: nav.NavigationState
    answers: dict[str, Any]
    outcome: str
    reason: str | None = None
    errors: dict[str, str] = field(default_factory=dict)
    submission: FormSubmission | None = None


def to_state(payload: NavigationStatePayload) -> nav.NavigationState:
    return nav.NavigationState(
        current_section_index=payload.current_section_index,
        visited_sections=frozenset(payload.visited_sections),
        section_path=tuple(payload.section_path),
        submitted=payload.submitted,
    )


def to_payload(state: nav.NavigationState) -> NavigationStatePayload:
    return NavigationStatePayload(
        current_section_index=state.current_section_index,
        visited_sections=sorted(state.visited_sections),
        section_path=list(state.section_path),
        submitted=state.submitted,
    )


def build_view(
    definition: FormDefinition, state: nav.NavigationState, answers: dict[str, Any]
) -> NavigationView:
    section = nav.current_section(definition, state)
    gate = nav.submit_gate(definition, state)
    valid = not validate_definition(definition, answers, state.visited_sections)
    return NavigationView(
        current_section_id=section.id if section else None,
        current_section_index=state.current_section_index,
        visible_field_ids=[f.id for f in nav.visible_fields(definition, state)],
        can_proceed=nav.can_proceed_to_next(definition, state, answers),
        can_go_back=nav.can_go_back(state),
        can_submit=gate is nav.SubmitGate.OPEN and valid and not state.submitted,
        at_end_of_path=nav.is_at_end_of_path(definition, state),
        submit_gate=gate.value,
        dead_end=nav.is_dead_end(definition, state),
    )


def load_definition(form: Form) -> FormDefinition:
    return form_service.parse_definition(form.schema_json)


def start(form: Form) -> tuple[FormDefinition, nav.NavigationState]:
    definition = load_definition(form)
    return definition, nav.initial_state(definition)


def _prepare(
    form: Form, payload: NavigationStatePayload
) -> tuple[FormDefinition, nav.NavigationState]:
    definition = load_definition(form)
    state = to_state(payload)
    nav.check_state(definition, state)
    if state.submitted:
        raise InvalidNavigationStateError("Form was already submitted in this session")
    return definition, state


def _known_answers(definition: FormDefinition, answers: dict[str, Any]) -> dict[str, Any]:
    field_ids = {f.id for f in definition.fields}
    return {key: value for key, value in answers.items() if key in field_ids}


def _finish(
    db: Session,
    form: Form,
    definition: FormDefinition,
    state: nav.NavigationState,
    answers: dict[str, Any],
) -> FormSubmission:
    errors = validate_definition(definition, answers, state.visited_sections)
    if errors:
        raise SubmissionValidationError(errors)
    return form_submission_service.create_submission(
        db, form, _known_answers(definition, answers)
    )


def apply_event(
    db: Session,
    form: Form,
    payload: NavigationStatePayload,
    answers: dict[str, Any],
    event: NavigationEvent,
) -> FillResult:
    """Apply one respondent event and return the resulting state.

    The prior state and answers are never modified, so a failed submission
    leaves the client free to retry with what it already holds.
    """
    definition, state = _prepare(form, payload)
    answers = dict(answers)

    if event.type == "answer":
        if event.field_id not in {f.id for f in definition.fields}:
            raise ValueError(f"Unknown field id: {event.field_id}")
        answers[event.field_id] = event.value
        step = nav.trigger_branch(definition, state, event.field_id, event.value)
    elif event.type == "next":
        step = nav.advance(definition, state, answers)
    else:
        step = nav.go_back(definition, state)

    if step.outcome is not nav.NavigationOutcome.SUBMIT:
        return FillResult(
            state=step.state,
            answers=answers,
            outcome=step.outcome.value,
            reason=step.reason,
        )

    # The route ended: an implicit submit attempt from the current section
    if not nav.allows_submit_here(definition, state):
        return FillResult(
            state=state, answers=answers, outcome="submit_blocked", reason=step.reason
        )
    try:
        submission = _finish(db, form, definition, state, answers)
    except SubmissionValidationError as exc:
        return FillResult(
            state=state,
            answers=answers,
            outcome="invalid",
            reason=step.reason,
            errors=exc.errors,
        )
    return FillResult(
        state=nav.mark_submitted(state),
        answers=answers,
        outcome="submitted",
        reason=step.reason,
        submission=submission,
    )


def submit(
    db: Session,
    form: Form,
    payload: NavigationStatePayload,
    answers: dict[str, Any],
) -> FormSubmission:
    """Explicit Submit press. The gate must be open and answers valid."""
    definition, state = _prepare(form, payload)
    gate = nav.submit_gate(definition, state)
    if gate is not nav.SubmitGate.OPEN:
        logger.info(
            "form_submit_refused",
            extra=build_log_context(form_id=str(form.id), route="submit"),
        )
        raise SubmissionNotAllowedError(f"Submission is not available here ({gate.value})")
    return _finish(db, form, definition, state, answers)
