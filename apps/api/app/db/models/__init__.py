"""SQLAlchemy ORM models."""

from app.db.models.forms import Form, FormSubmission

__all__ = ["Form", "FormSubmission"]
