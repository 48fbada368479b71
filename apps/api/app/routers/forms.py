"""Form builder endpoints: definitions, sections, and submission review."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from app.core.deps import get_db, get_form_or_404
from app.db.models import Form
from app.schemas.forms import (
    FormCreate,
    FormRead,
    FormSection,
    FormSubmissionRead,
    FormSummary,
    FormUpdate,
    SectionCreate,
    SectionReorder,
    SectionUpdate,
)
from app.services import form_service, form_submission_service, submission_export_service
from app.services.errors import LastSectionError, SectionNotFoundError

router = APIRouter(prefix="/forms", tags=["forms"])


def _form_summary(form: Form) -> FormSummary:
    definition = form_service.parse_definition(form.schema_json)
    return FormSummary(
        id=form.id,
        name=form.name,
        section_count=len(definition.sections),
        field_count=len(definition.fields),
        created_at=form.created_at,
        updated_at=form.updated_at,
    )


def _form_read(form: Form) -> FormRead:
    definition = form_service.parse_definition(form.schema_json)
    return FormRead(
        id=form.id,
        name=form.name,
        sections=definition.sections,
        fields=definition.fields,
        columns=definition.columns,
        created_at=form.created_at,
        updated_at=form.updated_at,
    )


def _submission_read(submission) -> FormSubmissionRead:
    return FormSubmissionRead(
        id=submission.id,
        form_id=submission.form_id,
        data=submission.answers_json,
        submitted_at=submission.submitted_at,
    )


# =============================================================================
# Form CRUD
# =============================================================================


@router.get("", response_model=list[FormSummary])
def list_forms(db: Session = Depends(get_db)):
    return [_form_summary(form) for form in form_service.list_forms(db)]


@router.post("", response_model=FormRead, status_code=201)
def create_form(body: FormCreate, db: Session = Depends(get_db)):
    form = form_service.create_form(db, body)
    return _form_read(form)


@router.get("/{form_id}", response_model=FormRead)
def get_form(form: Form = Depends(get_form_or_404)):
    return _form_read(form)


@router.put("/{form_id}", response_model=FormRead)
def update_form(
    body: FormUpdate,
    form: Form = Depends(get_form_or_404),
    db: Session = Depends(get_db),
):
    form = form_service.update_form(db, form, body)
    return _form_read(form)


@router.delete("/{form_id}", status_code=204)
def delete_form(form: Form = Depends(get_form_or_404), db: Session = Depends(get_db)):
    form_service.delete_form(db, form)
    return Response(status_code=204)


# =============================================================================
# Sections
# =============================================================================


@router.post("/{form_id}/sections", response_model=FormSection, status_code=201)
def add_section(
    body: SectionCreate,
    form: Form = Depends(get_form_or_404),
    db: Session = Depends(get_db),
):
    try:
        return form_service.add_section(db, form, body)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.put("/{form_id}/sections/order", response_model=list[FormSection])
def reorder_sections(
    body: SectionReorder,
    form: Form = Depends(get_form_or_404),
    db: Session = Depends(get_db),
):
    try:
        return form_service.reorder_sections(db, form, body.section_ids)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.patch("/{form_id}/sections/{section_id}", response_model=FormSection)
def update_section(
    section_id: str,
    body: SectionUpdate,
    form: Form = Depends(get_form_or_404),
    db: Session = Depends(get_db),
):
    try:
        return form_service.update_section(db, form, section_id, body)
    except SectionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.delete("/{form_id}/sections/{section_id}", status_code=204)
def delete_section(
    section_id: str,
    form: Form = Depends(get_form_or_404),
    db: Session = Depends(get_db),
):
    try:
        form_service.delete_section(db, form, section_id)
    except SectionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except LastSectionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return Response(status_code=204)


# =============================================================================
# Submissions (review + export)
# =============================================================================


@router.get("/{form_id}/submissions", response_model=list[FormSubmissionRead])
def list_submissions(form: Form = Depends(get_form_or_404), db: Session = Depends(get_db)):
    submissions = form_submission_service.list_form_submissions(db, form.id)
    return [_submission_read(s) for s in submissions]


@router.get("/{form_id}/submissions/export")
def export_submissions(form: Form = Depends(get_form_or_404), db: Session = Depends(get_db)):
    content = submission_export_service.build_submissions_csv(db, form)
    filename = submission_export_service.export_filename(form)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{form_id}/submissions/{submission_id}", response_model=FormSubmissionRead)
def get_submission(
    submission_id: UUID,
    form: Form = Depends(get_form_or_404),
    db: Session = Depends(get_db),
):
    submission = form_submission_service.get_submission(db, form.id, submission_id)
    if not submission:
        raise HTTPException(status_code=404, detail="Submission not found")
    return _submission_read(submission)
