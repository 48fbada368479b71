"""SQLAlchemy ORM models for form definitions and submissions."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Index, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


def _empty_schema() -> dict:
    return {"sections": [], "fields": [], "columns": []}


class Form(Base):
    """Form definition built in the editor."""

    __tablename__ = "forms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Sections, fields, and legacy columns as the editor saved them (pruned)
    schema_json: Mapped[dict] = mapped_column(JSON, nullable=False, default=_empty_schema)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    submissions: Mapped[list["FormSubmission"]] = relationship(
        back_populates="form",
        cascade="all, delete-orphan",
    )


class FormSubmission(Base):
    """One respondent's submitted answers. Never updated after insert."""

    __tablename__ = "form_submissions"
    __table_args__ = (
        Index("idx_form_submissions_form", "form_id", "submitted_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    form_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("forms.id", ondelete="CASCADE"),
        nullable=False,
    )
    answers_json: Mapped[dict] = mapped_column(JSON, nullable=False)
    submitted_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    form: Mapped["Form"] = relationship(back_populates="submissions")
