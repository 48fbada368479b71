"""Section navigation engine for respondents filling a multi-section form.

Every operation takes the form definition and the prior ``NavigationState``
and returns a ``NavigationStep`` holding the next state; states are never
mutated in place.

Destinations are chosen by an ordered chain of routing strategies. Each
strategy either names a destination or has no opinion, and the first opinion
wins:

    answer entry:  BranchTrigger
    Next press:    ConfiguredNext -> VisitedFallback -> SequentialFallback -> Terminal

A terminal destination means the respondent reached the end of the form.
The engine reports it as ``NavigationOutcome.SUBMIT`` and leaves the state
untouched; the caller validates and persists, then calls ``mark_submitted``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from app.core.constants import END_OF_FORM
from app.schemas.forms import ConditionalRule, FormDefinition, FormField, FormSection
from app.services.conditional_rules import has_branching, resolve_rule
from app.services.errors import InvalidNavigationStateError
from app.services.scoped_validation import effective_section_id, is_empty_answer

logger = logging.getLogger(__name__)


class NavigationOutcome(str, Enum):
    MOVED = "moved"
    REFUSED = "refused"
    SUBMIT = "submit"
    UNCHANGED = "unchanged"


class SubmitGate(str, Enum):
    """Whether the respondent may submit from where they stand."""

    OPEN = "open"
    NOT_AT_END = "not_at_end"
    CLOSED_HERE = "closed_here"


@dataclass(frozen=True)
class NavigationState:
    current_section_index: int = 0
    visited_sections: frozenset[str] = field(default_factory=frozenset)
    section_path: tuple[str, ...] = ()
    submitted: bool = False


@dataclass(frozen=True)
class NavigationStep:
    state: NavigationState
    outcome: NavigationOutcome
    reason: str | None = None


@dataclass(frozen=True)
class Destination:
    """A section index to jump to, or None for the end of the form."""

    index: int | None
    reason: str

    @property
    def is_terminal(self) -> bool:
        return self.index is None


@dataclass(frozen=True)
class RoutingContext:
    sections: list[FormSection]
    state: NavigationState
    branch_rule: ConditionalRule | None = None

    @property
    def current(self) -> FormSection | None:
        if not self.sections:
            return None
        return self.sections[self.state.current_section_index]

    def index_of(self, section_id: str) -> int | None:
        for index, section in enumerate(self.sections):
            if section.id == section_id:
                return index
        return None


# =============================================================================
# Routing strategies
# =============================================================================


class BranchTrigger:
    """A conditional rule matched the answer just entered."""

    name = "branch_trigger"

    def resolve(self, ctx: RoutingContext) -> Destination | None:
        rule = ctx.branch_rule
        if rule is None:
            return None
        if rule.target_section_id == END_OF_FORM:
            return Destination(None, self.name)
        index = ctx.index_of(rule.target_section_id)
        if index is None:
            return None
        return Destination(index, self.name)


class ConfiguredNext:
    """The current section names its successor (or the end of the form)."""

    name = "configured_next"

    def resolve(self, ctx: RoutingContext) -> Destination | None:
        section = ctx.current
        if section is None or not section.next_section_id:
            return None
        if section.next_section_id == END_OF_FORM:
            return Destination(None, self.name)
        index = ctx.index_of(section.next_section_id)
        if index is None:
            return None
        return Destination(index, self.name)


class VisitedFallback:
    """Resume a branch path: the nearest visited section after the current one."""

    name = "visited_fallback"

    def resolve(self, ctx: RoutingContext) -> Destination | None:
        start = ctx.state.current_section_index + 1
        for index in range(start, len(ctx.sections)):
            if ctx.sections[index].id in ctx.state.visited_sections:
                return Destination(index, self.name)
        return None


class SequentialFallback:
    name = "sequential_fallback"

    def resolve(self, ctx: RoutingContext) -> Destination | None:
        index = ctx.state.current_section_index + 1
        if index < len(ctx.sections):
            return Destination(index, self.name)
        return None


class Terminal:
    name = "terminal"

    def resolve(self, ctx: RoutingContext) -> Destination | None:
        return Destination(None, self.name)


BRANCH_CHAIN = (BranchTrigger(),)
NEXT_CHAIN = (ConfiguredNext(), VisitedFallback(), SequentialFallback(), Terminal())


def route(chain, ctx: RoutingContext) -> Destination | None:
    for strategy in chain:
        destination = strategy.resolve(ctx)
        if destination is not None:
            return destination
    return None


# =============================================================================
# Queries
# =============================================================================


def ordered_sections(definition: FormDefinition) -> list[FormSection]:
    """Sections by ascending order; equal orders keep their list position."""
    return sorted(definition.sections, key=lambda s: s.order)


def initial_state(definition: FormDefinition) -> NavigationState:
    sections = ordered_sections(definition)
    if not sections:
        return NavigationState()
    first = sections[0]
    return NavigationState(
        current_section_index=0,
        visited_sections=frozenset({first.id}),
        section_path=(first.id,),
    )


def check_state(definition: FormDefinition, state: NavigationState) -> None:
    """Raise InvalidNavigationStateError if ``state`` cannot belong to this form."""
    count = len(definition.sections)
    if count == 0 and state.current_section_index != 0:
        raise InvalidNavigationStateError("Form has no sections to navigate")
    if count and state.current_section_index >= count:
        raise InvalidNavigationStateError(
            f"Section index {state.current_section_index} is out of range"
        )
    if not count:
        return

    sections = ordered_sections(definition)
    path = state.section_path
    if not path:
        raise InvalidNavigationStateError("Section path is empty")
    if path[-1] != sections[state.current_section_index].id:
        raise InvalidNavigationStateError("Section path does not end at the current section")
    if path[0] != sections[0].id:
        raise InvalidNavigationStateError("Section path does not start at the first section")
    if not set(path) <= state.visited_sections:
        raise InvalidNavigationStateError("Section path includes unvisited sections")
    if not state.visited_sections <= {s.id for s in sections}:
        raise InvalidNavigationStateError("Visited sections include unknown section ids")


def current_section(
    definition: FormDefinition, state: NavigationState
) -> FormSection | None:
    return RoutingContext(ordered_sections(definition), state).current


def visible_fields(definition: FormDefinition, state: NavigationState) -> list[FormField]:
    """Fields shown on the current section.

    Forms without sections show every field. Fields without a (live) section
    belong to the first section.
    """
    sections = ordered_sections(definition)
    if not sections:
        return list(definition.fields)
    section = sections[state.current_section_index]
    section_ids = [s.id for s in sections]
    visible: list[FormField] = []
    for f in definition.fields:
        owner = effective_section_id(f, section_ids)
        if owner == section.id:
            visible.append(f)
        elif owner is None and state.current_section_index == 0:
            visible.append(f)
    return visible


def can_proceed_to_next(
    definition: FormDefinition, state: NavigationState, answers: dict[str, Any]
) -> bool:
    section = current_section(definition, state)
    if section is not None and not section.allow_next:
        return False

    section_ids = [s.id for s in definition.sections]
    for f in visible_fields(definition, state):
        unanswered = is_empty_answer(answers.get(f.id))
        if f.required and unanswered:
            return False
        # Branching dropdowns must be answered; their answer picks the route
        if unanswered and has_branching(f, section_ids):
            return False
    return True


def can_go_back(state: NavigationState) -> bool:
    return len(state.section_path) > 1


def is_at_end_of_path(definition: FormDefinition, state: NavigationState) -> bool:
    """No visited section lies ahead of the current one."""
    ctx = RoutingContext(ordered_sections(definition), state)
    return VisitedFallback().resolve(ctx) is None


def allows_submit_here(definition: FormDefinition, state: NavigationState) -> bool:
    section = current_section(definition, state)
    if len(definition.sections) <= 1 or section is None:
        return True
    return section.allow_submit


def submit_gate(definition: FormDefinition, state: NavigationState) -> SubmitGate:
    if len(definition.sections) <= 1:
        return SubmitGate.OPEN
    if not is_at_end_of_path(definition, state):
        return SubmitGate.NOT_AT_END
    if allows_submit_here(definition, state):
        return SubmitGate.OPEN
    return SubmitGate.CLOSED_HERE


def is_dead_end(definition: FormDefinition, state: NavigationState) -> bool:
    """At the end of the visited path with neither Submit nor Next available."""
    if submit_gate(definition, state) is not SubmitGate.CLOSED_HERE:
        return False
    section = current_section(definition, state)
    return section is not None and not section.allow_next


# =============================================================================
# Transitions
# =============================================================================


def _jump(sections: list[FormSection], state: NavigationState, index: int) -> NavigationState:
    section_id = sections[index].id
    return replace(
        state,
        current_section_index=index,
        visited_sections=state.visited_sections | {section_id},
        section_path=state.section_path + (section_id,),
    )


def _apply(
    sections: list[FormSection],
    state: NavigationState,
    destination: Destination | None,
) -> NavigationStep:
    if destination is None:
        return NavigationStep(state, NavigationOutcome.UNCHANGED)
    if destination.is_terminal:
        logger.debug("navigation_reached_end", extra={"reason": destination.reason})
        return NavigationStep(state, NavigationOutcome.SUBMIT, destination.reason)
    next_state = _jump(sections, state, destination.index)
    logger.debug(
        "navigation_moved",
        extra={
            "reason": destination.reason,
            "from_index": state.current_section_index,
            "to_index": destination.index,
        },
    )
    return NavigationStep(next_state, NavigationOutcome.MOVED, destination.reason)


def advance(
    definition: FormDefinition, state: NavigationState, answers: dict[str, Any]
) -> NavigationStep:
    """Handle an explicit Next press."""
    if not can_proceed_to_next(definition, state, answers):
        return NavigationStep(state, NavigationOutcome.REFUSED, "guard")
    sections = ordered_sections(definition)
    destination = route(NEXT_CHAIN, RoutingContext(sections, state))
    return _apply(sections, state, destination)


def trigger_branch(
    definition: FormDefinition, state: NavigationState, field_id: str, answer: Any
) -> NavigationStep:
    """Follow a conditional rule matched by an answer on the current section."""
    sections = ordered_sections(definition)
    candidates = [f for f in visible_fields(definition, state) if f.id == field_id]
    if not candidates:
        return NavigationStep(state, NavigationOutcome.UNCHANGED)
    rule = resolve_rule(candidates[0], answer, [s.id for s in sections])
    if rule is None:
        return NavigationStep(state, NavigationOutcome.UNCHANGED)
    destination = route(BRANCH_CHAIN, RoutingContext(sections, state, branch_rule=rule))
    return _apply(sections, state, destination)


def go_back(definition: FormDefinition, state: NavigationState) -> NavigationStep:
    """Return to the previous section on the path. The visited set is kept."""
    if not can_go_back(state):
        return NavigationStep(state, NavigationOutcome.REFUSED, "start_of_path")
    ctx = RoutingContext(ordered_sections(definition), state)
    index = ctx.index_of(state.section_path[-2])
    if index is None:
        return NavigationStep(state, NavigationOutcome.REFUSED, "start_of_path")
    next_state = replace(
        state,
        current_section_index=index,
        section_path=state.section_path[:-1],
    )
    return NavigationStep(next_state, NavigationOutcome.MOVED, "back")


def mark_submitted(state: NavigationState) -> NavigationState:
    return replace(state, submitted=True)
