"""Form service for definitions built in the editor and their sections."""

import logging
import uuid

from sqlalchemy.orm import Session

from app.core.constants import END_OF_FORM
from app.core.structured_logging import build_log_context
from app.db.models import Form
from app.schemas.forms import (
    FormColumn,
    FormCreate,
    FormDefinition,
    FormSection,
    FormUpdate,
    SectionCreate,
    SectionUpdate,
)
from app.services.conditional_rules import prune_rules
from app.services.errors import FormNotFoundError, LastSectionError, SectionNotFoundError

logger = logging.getLogger(__name__)


def parse_definition(schema_json: dict | None) -> FormDefinition:
    return FormDefinition.model_validate(schema_json or {})


def normalize_definition(definition: FormDefinition) -> FormDefinition:
    """Drop references that point at sections, fields, or options that no longer exist.

    Applied on every save so stored forms never carry stale pointers.
    """
    section_ids = {s.id for s in definition.sections}
    field_ids = {f.id for f in definition.fields}

    def _clean_columns(columns: list[FormColumn]) -> list[FormColumn]:
        return [
            c.model_copy(update={"field_ids": [i for i in c.field_ids if i in field_ids]})
            for c in columns
        ]

    sections: list[FormSection] = []
    for section in definition.sections:
        next_id = section.next_section_id
        if next_id and next_id != END_OF_FORM and next_id not in section_ids:
            next_id = None
        sections.append(
            section.model_copy(
                update={
                    "next_section_id": next_id,
                    "columns": _clean_columns(section.columns),
                }
            )
        )

    columns = _clean_columns(definition.columns)
    column_ids = {c.id for c in columns} | {c.id for s in sections for c in s.columns}

    fields = []
    for field in definition.fields:
        updates: dict = {}
        if field.section_id and field.section_id not in section_ids:
            updates["section_id"] = None
        if field.column_id and field.column_id not in column_ids:
            updates["column_id"] = None
        if updates:
            field = field.model_copy(update=updates)
        fields.append(prune_rules(field, section_ids))

    return FormDefinition(sections=sections, fields=fields, columns=columns)


def _store_definition(form: Form, definition: FormDefinition) -> None:
    normalized = normalize_definition(definition)
    form.schema_json = normalized.model_dump(mode="json")


def _definition_only(payload: FormCreate) -> FormDefinition:
    return FormDefinition(
        sections=payload.sections,
        fields=payload.fields,
        columns=payload.columns,
    )


# =============================================================================
# Form CRUD
# =============================================================================


def list_forms(db: Session) -> list[Form]:
    return db.query(Form).order_by(Form.created_at.desc()).all()


def get_form(db: Session, form_id: uuid.UUID) -> Form | None:
    return db.query(Form).filter(Form.id == form_id).first()


def get_form_or_raise(db: Session, form_id: uuid.UUID) -> Form:
    form = get_form(db, form_id)
    if not form:
        raise FormNotFoundError("Form not found")
    return form


def create_form(db: Session, payload: FormCreate) -> Form:
    form = Form(name=payload.name)
    _store_definition(form, _definition_only(payload))
    db.add(form)
    db.commit()
    db.refresh(form)
    logger.info("form_created", extra=build_log_context(form_id=str(form.id)))
    return form


def update_form(db: Session, form: Form, payload: FormUpdate) -> Form:
    form.name = payload.name
    _store_definition(form, _definition_only(payload))
    db.commit()
    db.refresh(form)
    logger.info("form_updated", extra=build_log_context(form_id=str(form.id)))
    return form


def delete_form(db: Session, form: Form) -> None:
    form_id = str(form.id)
    db.delete(form)
    db.commit()
    logger.info("form_deleted", extra=build_log_context(form_id=form_id))


def prune_stored_forms(db: Session) -> int:
    """Re-normalize every stored form. Returns how many changed."""
    changed = 0
    for form in db.query(Form).all():
        current = parse_definition(form.schema_json)
        normalized = normalize_definition(current)
        if normalized != current:
            form.schema_json = normalized.model_dump(mode="json")
            changed += 1
            logger.info("form_rules_pruned", extra=build_log_context(form_id=str(form.id)))
    db.commit()
    return changed


# =============================================================================
# Sections
# =============================================================================


def _find_section(definition: FormDefinition, section_id: str) -> FormSection:
    for section in definition.sections:
        if section.id == section_id:
            return section
    raise SectionNotFoundError("Section not found")


def add_section(db: Session, form: Form, payload: SectionCreate) -> FormSection:
    definition = parse_definition(form.schema_json)
    section_id = payload.id or f"section-{uuid.uuid4().hex[:12]}"
    if any(s.id == section_id for s in definition.sections):
        raise ValueError(f"Section id already exists: {section_id}")

    orders = [s.order for s in definition.sections]
    order = payload.order if payload.order is not None else max(orders, default=0) + 1
    if order in orders:
        raise ValueError(f"Duplicate section order: {order}")

    section = FormSection(
        id=section_id,
        title=payload.title,
        description=payload.description,
        order=order,
        columns=payload.columns,
        allow_submit=payload.allow_submit,
        allow_next=payload.allow_next,
        next_section_id=payload.next_section_id,
    )
    definition.sections.append(section)
    _store_definition(form, definition)
    db.commit()
    db.refresh(form)
    logger.info(
        "section_added",
        extra=build_log_context(form_id=str(form.id), section_id=section_id),
    )
    return _find_section(parse_definition(form.schema_json), section_id)


def update_section(
    db: Session, form: Form, section_id: str, payload: SectionUpdate
) -> FormSection:
    definition = parse_definition(form.schema_json)
    section = _find_section(definition, section_id)
    changes = payload.model_dump(exclude_unset=True)
    if "next_section_id" in changes and not changes["next_section_id"]:
        changes["next_section_id"] = None
    for key in ("title", "columns", "allow_submit", "allow_next"):
        if key in changes and changes[key] is None:
            changes.pop(key)
    if "columns" in changes:
        changes["columns"] = [FormColumn.model_validate(c) for c in changes["columns"]]

    updated = section.model_copy(update=changes)
    definition.sections = [updated if s.id == section_id else s for s in definition.sections]
    _store_definition(form, definition)
    db.commit()
    db.refresh(form)
    return _find_section(parse_definition(form.schema_json), section_id)


def delete_section(db: Session, form: Form, section_id: str) -> None:
    """Remove a section; its fields become unassigned and pointers to it are cleared."""
    definition = parse_definition(form.schema_json)
    _find_section(definition, section_id)
    if len(definition.sections) <= 1:
        raise LastSectionError("Cannot delete the last remaining section")

    definition.sections = [s for s in definition.sections if s.id != section_id]
    definition.fields = [
        f.model_copy(update={"section_id": None}) if f.section_id == section_id else f
        for f in definition.fields
    ]
    _store_definition(form, definition)
    db.commit()
    db.refresh(form)
    logger.info(
        "section_deleted",
        extra=build_log_context(form_id=str(form.id), section_id=section_id),
    )


def reorder_sections(db: Session, form: Form, section_ids: list[str]) -> list[FormSection]:
    definition = parse_definition(form.schema_json)
    existing = [s.id for s in definition.sections]
    if sorted(existing) != sorted(section_ids) or len(set(section_ids)) != len(section_ids):
        raise ValueError("Section ids must list every section exactly once")

    by_id = {s.id: s for s in definition.sections}
    definition.sections = [
        by_id[section_id].model_copy(update={"order": position})
        for position, section_id in enumerate(section_ids, start=1)
    ]
    _store_definition(form, definition)
    db.commit()
    db.refresh(form)
    return parse_definition(form.schema_json).sections
