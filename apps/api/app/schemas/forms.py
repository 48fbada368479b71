"""Schemas for form definitions, respondent navigation, and submissions."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator


FieldType = Literal["text", "dropdown", "table", "file"]

TableColumnType = Literal["text", "dropdown"]


class FieldValidation(BaseModel):
    min_length: int | None = Field(None, ge=0)
    max_length: int | None = Field(None, ge=0)


class ConditionalRule(BaseModel):
    answer: str
    target_section_id: str = Field(..., min_length=1)


class ConditionalLogic(BaseModel):
    conditions: list[ConditionalRule] = Field(default_factory=list)


class TableColumn(BaseModel):
    id: str = Field(..., min_length=1, max_length=100)
    name: str
    type: TableColumnType = "text"
    options: list[str] | None = None


class FormColumn(BaseModel):
    id: str = Field(..., min_length=1, max_length=100)
    name: str
    width: float = Field(100, ge=0, le=100)
    field_ids: list[str] = Field(default_factory=list)


class FormField(BaseModel):
    id: str = Field(..., min_length=1, max_length=100)
    type: FieldType
    question: str
    required: bool = False
    section_id: str | None = None
    column_id: str | None = None
    validation: FieldValidation | None = None
    options: list[str] | None = None
    table_columns: list[TableColumn] | None = None
    conditional_logic: ConditionalLogic | None = None

    @field_validator("conditional_logic", mode="before")
    @classmethod
    def _accept_bare_rule_list(cls, value: Any) -> Any:
        # Older editor builds stored the rules without the wrapping object
        if isinstance(value, list):
            return {"conditions": value}
        return value

    @property
    def rules(self) -> list[ConditionalRule]:
        if self.conditional_logic is None:
            return []
        return self.conditional_logic.conditions


class FormSection(BaseModel):
    id: str = Field(..., min_length=1, max_length=100)
    title: str
    description: str | None = None
    order: int
    columns: list[FormColumn] = Field(default_factory=list)
    allow_submit: bool = True
    allow_next: bool = True
    next_section_id: str | None = None

    @field_validator("next_section_id", mode="before")
    @classmethod
    def _blank_means_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class FormDefinition(BaseModel):
    """Sections, fields, and legacy columns of one form."""

    sections: list[FormSection] = Field(default_factory=list)
    fields: list[FormField] = Field(default_factory=list)
    # Deprecated: top-level columns from before sections existed
    columns: list[FormColumn] = Field(default_factory=list)


def _find_duplicates(values: list[Any]) -> list[Any]:
    seen: set[Any] = set()
    duplicates: list[Any] = []
    for value in values:
        if value in seen and value not in duplicates:
            duplicates.append(value)
        seen.add(value)
    return duplicates


class FormCreate(FormDefinition):
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise ValueError("Form name cannot be empty")
        return value

    @model_validator(mode="after")
    def _check_editor_invariants(self) -> "FormCreate":
        duplicate_sections = _find_duplicates([s.id for s in self.sections])
        if duplicate_sections:
            raise ValueError(f"Duplicate section id: {duplicate_sections[0]}")
        duplicate_orders = _find_duplicates([s.order for s in self.sections])
        if duplicate_orders:
            raise ValueError(f"Duplicate section order: {duplicate_orders[0]}")
        duplicate_fields = _find_duplicates([f.id for f in self.fields])
        if duplicate_fields:
            raise ValueError(f"Duplicate field id: {duplicate_fields[0]}")
        return self


class FormUpdate(FormCreate):
    pass


class FormSummary(BaseModel):
    id: UUID
    name: str
    section_count: int
    field_count: int
    created_at: datetime
    updated_at: datetime


class FormRead(FormDefinition):
    id: UUID
    name: str
    created_at: datetime
    updated_at: datetime


class SectionCreate(BaseModel):
    id: str | None = Field(None, min_length=1, max_length=100)
    title: str = Field(..., min_length=1)
    description: str | None = None
    order: int | None = None
    columns: list[FormColumn] = Field(default_factory=list)
    allow_submit: bool = True
    allow_next: bool = True
    next_section_id: str | None = None


class SectionUpdate(BaseModel):
    title: str | None = Field(None, min_length=1)
    description: str | None = None
    columns: list[FormColumn] | None = None
    allow_submit: bool | None = None
    allow_next: bool | None = None
    next_section_id: str | None = None


class SectionReorder(BaseModel):
    section_ids: list[str] = Field(..., min_length=1)


# =============================================================================
# Respondent navigation
# =============================================================================


class NavigationStatePayload(BaseModel):
    current_section_index: int = Field(0, ge=0)
    visited_sections: list[str] = Field(default_factory=list)
    section_path: list[str] = Field(default_factory=list)
    submitted: bool = False


NavigationEventType = Literal["answer", "next", "back"]


class NavigationEvent(BaseModel):
    type: NavigationEventType
    field_id: str | None = None
    value: Any = None

    @model_validator(mode="after")
    def _answer_needs_field(self) -> "NavigationEvent":
        if self.type == "answer" and not self.field_id:
            raise ValueError("Answer events require field_id")
        return self


class NavigationView(BaseModel):
    current_section_id: str | None
    current_section_index: int
    visible_field_ids: list[str]
    can_proceed: bool
    can_go_back: bool
    can_submit: bool
    at_end_of_path: bool
    submit_gate: str
    dead_end: bool


class NavigateRequest(BaseModel):
    state: NavigationStatePayload
    answers: dict[str, Any] = Field(default_factory=dict)
    event: NavigationEvent


class NavigateResponse(BaseModel):
    state: NavigationStatePayload
    answers: dict[str, Any]
    outcome: str
    reason: str | None = None
    view: NavigationView
    errors: dict[str, str] = Field(default_factory=dict)
    submission_id: UUID | None = None


class FormPublicRead(FormDefinition):
    form_id: UUID
    name: str
    state: NavigationStatePayload
    view: NavigationView


# =============================================================================
# Submissions and uploads
# =============================================================================


class FormSubmitRequest(BaseModel):
    state: NavigationStatePayload
    answers: dict[str, Any] = Field(default_factory=dict)


class FormSubmissionRead(BaseModel):
    id: UUID
    form_id: UUID
    data: dict[str, Any]
    submitted_at: datetime


class SubmissionErrorsRead(BaseModel):
    detail: str
    errors: dict[str, str]


class UploadedFileRead(BaseModel):
    filename: str
    original_name: str
    size: int
    content_type: str
    path: str
