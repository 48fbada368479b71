"""Form submission persistence and lookup."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.structured_logging import build_log_context
from app.db.models import Form, FormSubmission
from app.services.errors import SubmissionUnavailableError

logger = logging.getLogger(__name__)


def create_submission(db: Session, form: Form, answers: dict[str, Any]) -> FormSubmission:
    """Persist already-validated answers.

    Storage failures are rolled back and raised as SubmissionUnavailableError
    so the respondent can retry with the same answers and navigation state.
    """
    submission = FormSubmission(
        form_id=form.id,
        answers_json=answers,
        submitted_at=datetime.now(timezone.utc),
    )
    try:
        db.add(submission)
        db.commit()
        db.refresh(submission)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "form_submission_failed",
            extra=build_log_context(form_id=str(form.id), route="submit"),
        )
        raise SubmissionUnavailableError("Submission could not be saved, please retry") from exc

    logger.info(
        "form_submission_received",
        extra=build_log_context(form_id=str(form.id), submission_id=str(submission.id)),
    )
    return submission


def list_form_submissions(db: Session, form_id: uuid.UUID) -> list[FormSubmission]:
    return (
        db.query(FormSubmission)
        .filter(FormSubmission.form_id == form_id)
        .order_by(FormSubmission.submitted_at.desc())
        .all()
    )


def get_submission(
    db: Session, form_id: uuid.UUID, submission_id: uuid.UUID
) -> FormSubmission | None:
    return (
        db.query(FormSubmission)
        .filter(FormSubmission.form_id == form_id, FormSubmission.id == submission_id)
        .first()
    )
