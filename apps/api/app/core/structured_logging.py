"""Structured logging helpers (answer-safe)."""

from typing import Any


def build_log_context(
    *,
    form_id: str | None = None,
    submission_id: str | None = None,
    section_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict that never carries respondent answers."""
    context: dict[str, Any] = {}
    if form_id:
        context["form_id"] = form_id
    if submission_id:
        context["submission_id"] = submission_id
    if section_id:
        context["section_id"] = section_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
