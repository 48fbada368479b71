"""FastAPI dependencies for database access and form lookup."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from app.db.models import Form
from app.db.session import SessionLocal
from app.services import form_service


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_form_or_404(form_id: UUID, db: Session = Depends(get_db)) -> Form:
    """Load the form named in the path or answer 404."""
    form = form_service.get_form(db, form_id)
    if not form:
        raise HTTPException(status_code=404, detail="Form not found")
    return form
