"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, recreated for each test
- HTTPX AsyncClient wired to the app with the test session
- Small form definition builders shared by the engine and API tests
"""
import os
from typing import AsyncGenerator, Generator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import Session

# Must be set before app modules read settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"

from app.main import app
from app.core.deps import get_db
from app.db import models  # noqa: F401
from app.db.base import Base
from app.db.session import engine, SessionLocal
from app.schemas.forms import FormDefinition


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; app code may commit freely."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient for the builder and respondent endpoints."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


# =============================================================================
# Definition builders
# =============================================================================

def section(section_id: str, order: int, **kwargs) -> dict:
    return {"id": section_id, "title": section_id.upper(), "order": order, **kwargs}


def field(field_id: str, section_id: str | None = None, **kwargs) -> dict:
    data = {"id": field_id, "type": "text", "question": f"Question {field_id}"}
    if section_id is not None:
        data["section_id"] = section_id
    data.update(kwargs)
    return data


def dropdown(field_id: str, section_id: str | None, options: list[str], rules=None, **kwargs) -> dict:
    data = field(field_id, section_id, type="dropdown", options=options, **kwargs)
    if rules is not None:
        data["conditional_logic"] = {
            "conditions": [
                {"answer": answer, "target_section_id": target} for answer, target in rules
            ]
        }
    return data


def definition(sections=(), fields=()) -> FormDefinition:
    return FormDefinition.model_validate({"sections": list(sections), "fields": list(fields)})


@pytest.fixture
def branching_schema() -> dict:
    """S1 routes by q1: Yes -> S3, No -> end. S2 is skipped on the Yes path."""
    return {
        "sections": [
            section("s1", 1),
            section("s2", 2),
            section("s3", 3),
        ],
        "fields": [
            dropdown("q1", "s1", ["Yes", "No"], rules=[("Yes", "s3"), ("No", "end")]),
            field("q2", "s2", required=True),
            field("q3", "s3", required=True),
        ],
    }
