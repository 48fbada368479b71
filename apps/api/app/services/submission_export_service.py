"""CSV export of form submissions."""

import csv
import io
import json
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from app.db.models import Form, FormSubmission
from app.services import form_service, form_submission_service


CSV_DANGEROUS_PREFIXES = ("=", "+", "-", "@")


def _csv_safe(value: str) -> str:
    if value and value.startswith(CSV_DANGEROUS_PREFIXES):
        return f"'{value}"
    return value


def _serialize_csv_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True)
    return str(value)


def _write_csv(headers: Sequence[str], rows: Iterable[Sequence[Any]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([_csv_safe(h) for h in headers])
    for row in rows:
        writer.writerow([_csv_safe(_serialize_csv_value(value)) for value in row])
    return output.getvalue()


def _answer_columns(form: Form, submissions: list[FormSubmission]) -> list[tuple[str, str]]:
    """(field id, header) pairs: form fields first, then ids only seen in answers."""
    definition = form_service.parse_definition(form.schema_json)
    answered: list[str] = []
    for submission in submissions:
        for field_id in submission.answers_json or {}:
            if field_id not in answered:
                answered.append(field_id)

    labels = {f.id: f.question for f in definition.fields}
    ordered = [f.id for f in definition.fields if f.id in answered]
    ordered += [field_id for field_id in answered if field_id not in labels]
    return [(field_id, labels.get(field_id, field_id)) for field_id in ordered]


def build_submissions_csv(db: Session, form: Form) -> str:
    submissions = form_submission_service.list_form_submissions(db, form.id)
    columns = _answer_columns(form, submissions)
    headers = ["Submission ID", "Submitted At", *[header for _, header in columns]]
    rows = [
        [
            str(submission.id),
            submission.submitted_at,
            *[(submission.answers_json or {}).get(field_id) for field_id, _ in columns],
        ]
        for submission in submissions
    ]
    return _write_csv(headers, rows)


def export_filename(form: Form) -> str:
    safe_name = "".join(c if c.isalnum() or c in "-_ " else "_" for c in form.name).strip()
    return f"{safe_name or 'form'}_submissions.csv"
