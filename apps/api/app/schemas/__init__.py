"""Pydantic schemas for API request/response models."""

from app.schemas.forms import (
    FormCreate,
    FormDefinition,
    FormField,
    FormPublicRead,
    FormRead,
    FormSection,
    FormSubmissionRead,
    FormSummary,
    FormUpdate,
    NavigateRequest,
    NavigateResponse,
)

__all__ = [
    "FormCreate",
    "FormDefinition",
    "FormField",
    "FormPublicRead",
    "FormRead",
    "FormSection",
    "FormSubmissionRead",
    "FormSummary",
    "FormUpdate",
    "NavigateRequest",
    "NavigateResponse",
]
