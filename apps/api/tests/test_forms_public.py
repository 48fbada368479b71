"""Tests for the respondent form-fill endpoints."""

import uuid
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from app.services import form_submission_service
from conftest import dropdown, field, section


async def _publish(client, schema: dict) -> str:
    res = await client.post("/forms", json={"name": "Survey", **schema})
    assert res.status_code == 201, res.text
    return res.json()["id"]


def _state(index: int, visited: list[str], path: list[str], submitted: bool = False) -> dict:
    return {
        "current_section_index": index,
        "visited_sections": visited,
        "section_path": path,
        "submitted": submitted,
    }


async def _navigate(client, form_id, state, answers, event):
    return await client.post(
        f"/forms/public/{form_id}/navigate",
        json={"state": state, "answers": answers, "event": event},
    )


# =============================================================================
# Start
# =============================================================================


@pytest.mark.asyncio
async def test_public_form_starts_on_first_section(client, branching_schema):
    form_id = await _publish(client, branching_schema)

    res = await client.get(f"/forms/public/{form_id}")

    assert res.status_code == 200
    data = res.json()
    assert data["name"] == "Survey"
    assert data["state"] == _state(0, ["s1"], ["s1"])
    assert data["view"]["current_section_id"] == "s1"
    assert data["view"]["visible_field_ids"] == ["q1"]
    assert data["view"]["can_proceed"] is False
    assert data["view"]["can_go_back"] is False


@pytest.mark.asyncio
async def test_public_form_not_found(client):
    res = await client.get(f"/forms/public/{uuid.uuid4()}")
    assert res.status_code == 404


# =============================================================================
# Navigate
# =============================================================================


@pytest.mark.asyncio
async def test_answer_follows_branch(client, branching_schema):
    form_id = await _publish(client, branching_schema)

    res = await _navigate(
        client,
        form_id,
        _state(0, ["s1"], ["s1"]),
        {},
        {"type": "answer", "field_id": "q1", "value": "Yes"},
    )

    assert res.status_code == 200
    data = res.json()
    assert data["outcome"] == "moved"
    assert data["reason"] == "branch_trigger"
    assert data["answers"] == {"q1": "Yes"}
    assert data["state"] == _state(2, ["s1", "s3"], ["s1", "s3"])
    assert data["view"]["current_section_id"] == "s3"
    assert data["view"]["can_go_back"] is True


@pytest.mark.asyncio
async def test_branch_to_end_submits(client, db, branching_schema):
    form_id = await _publish(client, branching_schema)

    res = await _navigate(
        client,
        form_id,
        _state(0, ["s1"], ["s1"]),
        {"stray": "dropped"},
        {"type": "answer", "field_id": "q1", "value": "No"},
    )

    data = res.json()
    assert data["outcome"] == "submitted"
    assert data["state"]["submitted"] is True
    assert data["submission_id"]

    stored = form_submission_service.list_form_submissions(db, uuid.UUID(form_id))
    assert len(stored) == 1
    assert stored[0].answers_json == {"q1": "No"}


@pytest.mark.asyncio
async def test_branch_to_end_reports_errors_in_scope(client):
    form_id = await _publish(
        client,
        {
            "sections": [section("s1", 1), section("s2", 2)],
            "fields": [
                dropdown("q1", "s1", ["Yes", "No"], rules=[("No", "end")]),
                field("email", required=True),
                field("later", "s2", required=True),
            ],
        },
    )

    res = await _navigate(
        client,
        form_id,
        _state(0, ["s1"], ["s1"]),
        {},
        {"type": "answer", "field_id": "q1", "value": "No"},
    )

    data = res.json()
    assert data["outcome"] == "invalid"
    assert data["errors"] == {"email": "This field is required"}
    assert data["state"] == _state(0, ["s1"], ["s1"])


@pytest.mark.asyncio
async def test_end_blocked_when_section_disallows_submit(client):
    form_id = await _publish(
        client,
        {"sections": [section("s1", 1, next_section_id="end", allow_submit=False), section("s2", 2)]},
    )

    res = await _navigate(client, form_id, _state(0, ["s1"], ["s1"]), {}, {"type": "next"})

    data = res.json()
    assert data["outcome"] == "submit_blocked"
    assert data["state"]["submitted"] is False


@pytest.mark.asyncio
async def test_next_refused_then_allowed(client):
    form_id = await _publish(
        client,
        {
            "sections": [section("s1", 1), section("s2", 2)],
            "fields": [field("name", "s1", required=True)],
        },
    )
    start = _state(0, ["s1"], ["s1"])

    res = await _navigate(client, form_id, start, {}, {"type": "next"})
    assert res.json()["outcome"] == "refused"
    assert res.json()["reason"] == "guard"
    assert res.json()["state"] == start

    res = await _navigate(client, form_id, start, {"name": "Ada"}, {"type": "next"})
    assert res.json()["outcome"] == "moved"
    assert res.json()["state"] == _state(1, ["s1", "s2"], ["s1", "s2"])


@pytest.mark.asyncio
async def test_back_keeps_visited_sections(client, branching_schema):
    form_id = await _publish(client, branching_schema)

    res = await _navigate(
        client, form_id, _state(2, ["s1", "s3"], ["s1", "s3"]), {"q1": "Yes"}, {"type": "back"}
    )

    data = res.json()
    assert data["outcome"] == "moved"
    assert data["state"] == _state(0, ["s1", "s3"], ["s1"])
    assert data["view"]["submit_gate"] == "not_at_end"
    assert data["view"]["can_submit"] is False


@pytest.mark.asyncio
async def test_navigate_rejects_bad_requests(client, branching_schema):
    form_id = await _publish(client, branching_schema)

    res = await _navigate(client, form_id, _state(7, [], []), {}, {"type": "next"})
    assert res.status_code == 400

    res = await _navigate(
        client, form_id, _state(0, ["s1"], ["s1"], submitted=True), {}, {"type": "next"}
    )
    assert res.status_code == 400

    res = await _navigate(
        client,
        form_id,
        _state(0, ["s1"], ["s1"]),
        {},
        {"type": "answer", "field_id": "nope", "value": "x"},
    )
    assert res.status_code == 400

    res = await _navigate(client, form_id, _state(0, ["s1"], ["s1"]), {}, {"type": "answer"})
    assert res.status_code == 422


# =============================================================================
# Submit
# =============================================================================


@pytest.mark.asyncio
async def test_submit_at_end_of_path(client, db, branching_schema):
    form_id = await _publish(client, branching_schema)

    res = await client.post(
        f"/forms/public/{form_id}/submit",
        json={
            "state": _state(2, ["s1", "s3"], ["s1", "s3"]),
            "answers": {"q1": "Yes", "q3": "done", "extra": "ignored"},
        },
    )

    assert res.status_code == 201, res.text
    assert res.json()["data"] == {"q1": "Yes", "q3": "done"}
    assert len(form_submission_service.list_form_submissions(db, uuid.UUID(form_id))) == 1


@pytest.mark.asyncio
async def test_submit_returns_field_errors(client, branching_schema):
    form_id = await _publish(client, branching_schema)

    res = await client.post(
        f"/forms/public/{form_id}/submit",
        json={"state": _state(2, ["s1", "s3"], ["s1", "s3"]), "answers": {"q1": "Yes"}},
    )

    assert res.status_code == 422
    assert res.json()["errors"] == {"q3": "This field is required"}


@pytest.mark.asyncio
async def test_submit_refused_before_end_of_path(client, branching_schema):
    form_id = await _publish(client, branching_schema)

    res = await client.post(
        f"/forms/public/{form_id}/submit",
        json={"state": _state(0, ["s1", "s3"], ["s1"]), "answers": {"q1": "Yes", "q3": "x"}},
    )

    assert res.status_code == 409


@pytest.mark.asyncio
async def test_submit_retry_after_storage_failure(client, db, branching_schema):
    form_id = await _publish(client, branching_schema)
    body = {
        "state": _state(2, ["s1", "s3"], ["s1", "s3"]),
        "answers": {"q1": "Yes", "q3": "done"},
    }

    with patch.object(
        db, "commit", side_effect=OperationalError("INSERT", {}, Exception("disk full"))
    ):
        res = await client.post(f"/forms/public/{form_id}/submit", json=body)
    assert res.status_code == 503
    assert form_submission_service.list_form_submissions(db, uuid.UUID(form_id)) == []

    res = await client.post(f"/forms/public/{form_id}/submit", json=body)
    assert res.status_code == 201
    assert len(form_submission_service.list_form_submissions(db, uuid.UUID(form_id))) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "state",
    [
        {"current_section_index": 1},
        _state(1, [], []),
        _state(1, ["s1", "s2"], ["s2"]),
        _state(1, ["s2"], ["s1", "s2"]),
        _state(1, ["s1", "s2", "ghost"], ["s1", "s2"]),
        _state(1, ["s1", "s2"], ["s1", "s3"]),
    ],
)
async def test_forged_state_is_rejected(client, db, state):
    form_id = await _publish(
        client,
        {
            "sections": [section("s1", 1), section("s2", 2), section("s3", 3)],
            "fields": [field("f1", "s1", required=True), field("f2", "s2", required=True)],
        },
    )

    res = await client.post(
        f"/forms/public/{form_id}/submit", json={"state": state, "answers": {}}
    )
    assert res.status_code == 400

    res = await _navigate(client, form_id, state, {}, {"type": "next"})
    assert res.status_code == 400

    assert form_submission_service.list_form_submissions(db, uuid.UUID(form_id)) == []
