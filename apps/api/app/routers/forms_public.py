"""Public form endpoints for respondents."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.deps import get_db
from app.core.rate_limit import limiter
from app.core.structured_logging import build_log_context
from app.schemas.forms import (
    FormPublicRead,
    FormSubmissionRead,
    FormSubmitRequest,
    NavigateRequest,
    NavigateResponse,
    SubmissionErrorsRead,
)
from app.services import form_fill_service, form_service
from app.services.errors import (
    SubmissionNotAllowedError,
    SubmissionUnavailableError,
    SubmissionValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forms/public", tags=["forms-public"])

UNAVAILABLE_DETAIL = "Submission could not be saved. Please try again."


def _load_form(db: Session, form_id: UUID):
    form = form_service.get_form(db, form_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    return form


@router.get("/{form_id}", response_model=FormPublicRead)
@limiter.limit(f"{settings.RATE_LIMIT_PUBLIC}/minute")
def get_public_form(request: Request, form_id: UUID, db: Session = Depends(get_db)):
    form = _load_form(db, form_id)
    definition, state = form_fill_service.start(form)
    return FormPublicRead(
        form_id=form.id,
        name=form.name,
        sections=definition.sections,
        fields=definition.fields,
        columns=definition.columns,
        state=form_fill_service.to_payload(state),
        view=form_fill_service.build_view(definition, state, {}),
    )


@router.post("/{form_id}/navigate", response_model=NavigateResponse)
@limiter.limit(f"{settings.RATE_LIMIT_PUBLIC}/minute")
def navigate_public_form(
    request: Request,
    form_id: UUID,
    body: NavigateRequest,
    db: Session = Depends(get_db),
):
    form = _load_form(db, form_id)
    try:
        result = form_fill_service.apply_event(db, form, body.state, body.answers, body.event)
    except SubmissionUnavailableError as exc:
        raise HTTPException(status_code=503, detail=UNAVAILABLE_DETAIL) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    definition = form_fill_service.load_definition(form)
    return NavigateResponse(
        state=form_fill_service.to_payload(result.state),
        answers=result.answers,
        outcome=result.outcome,
        reason=result.reason,
        view=form_fill_service.build_view(definition, result.state, result.answers),
        errors=result.errors,
        submission_id=result.submission.id if result.submission else None,
    )


@router.post(
    "/{form_id}/submit",
    response_model=FormSubmissionRead,
    status_code=201,
    responses={422: {"model": SubmissionErrorsRead}},
)
@limiter.limit(f"{settings.RATE_LIMIT_PUBLIC}/minute")
def submit_public_form(
    request: Request,
    form_id: UUID,
    body: FormSubmitRequest,
    db: Session = Depends(get_db),
):
    form = _load_form(db, form_id)
    try:
        submission = form_fill_service.submit(db, form, body.state, body.answers)
    except SubmissionValidationError as exc:
        return JSONResponse(
            status_code=422,
            content=SubmissionErrorsRead(detail=str(exc), errors=exc.errors).model_dump(),
        )
    except SubmissionNotAllowedError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except SubmissionUnavailableError as exc:
        raise HTTPException(status_code=503, detail=UNAVAILABLE_DETAIL) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    logger.info(
        "public_form_submitted",
        extra=build_log_context(
            form_id=str(form.id), submission_id=str(submission.id), route="submit"
        ),
    )
    return FormSubmissionRead(
        id=submission.id,
        form_id=submission.form_id,
        data=submission.answers_json,
        submitted_at=submission.submitted_at,
    )
