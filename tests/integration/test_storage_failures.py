"""Database failures surface as 502 UPSTREAM_FAILURE and leave stored state as it was."""
import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models.incident_attachment_orm import IncidentAttachmentORM
from backend.app.models.incident_orm import IncidentORM
from backend.app.models.incident_response_orm import IncidentResponseORM
from tests.helpers import INCIDENT_FORM, auth_headers, file_incident

PNG = ("photo.png", b"\x89PNG fake image bytes", "image/png")


async def count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


async def failing_commit():
    raise OperationalError("COMMIT", {}, Exception("database is locked"))


async def failing_execute(*args, **kwargs):
    raise OperationalError("SELECT", {}, Exception("server closed the connection unexpectedly"))


@pytest.mark.asyncio
async def test_acknowledge_commit_failure_records_nothing(
    client: AsyncClient, db_session: AsyncSession, monkeypatch, reporter, superuser
):
    """Response insert and status update roll back together."""
    incident_id = (await file_incident(client, reporter))["incident"]["id"]
    # Rollback expires loaded users; build headers up front
    headers = auth_headers(superuser)

    monkeypatch.setattr(db_session, "commit", failing_commit)
    resp = await client.post(
        f"/api/incidents/{incident_id}/acknowledge",
        json={"root_cause": "Missing review", "status": "closed"},
        headers=headers,
    )
    monkeypatch.undo()

    assert resp.status_code == 502
    assert resp.json() == {
        "error": "Failed to acknowledge incident; no changes were recorded",
        "code": "UPSTREAM_FAILURE",
    }
    assert await count(db_session, IncidentResponseORM) == 0

    detail = (await client.get(f"/api/incidents/{incident_id}", headers=headers)).json()
    assert detail["status"] == "open"
    assert detail["incident_responses"] == []


@pytest.mark.asyncio
async def test_status_commit_failure_keeps_status(
    client: AsyncClient, db_session: AsyncSession, monkeypatch, reporter, admin
):
    incident_id = (await file_incident(client, reporter))["incident"]["id"]
    headers = auth_headers(admin)

    monkeypatch.setattr(db_session, "commit", failing_commit)
    resp = await client.patch(f"/api/incidents/{incident_id}/status", json={"status": "closed"}, headers=headers)
    monkeypatch.undo()

    assert resp.status_code == 502
    assert resp.json()["code"] == "UPSTREAM_FAILURE"
    detail = (await client.get(f"/api/incidents/{incident_id}", headers=headers)).json()
    assert detail["status"] == "open"


@pytest.mark.asyncio
@pytest.mark.parametrize("method,suffix,body", [
    ("GET", "", None),
    ("PATCH", "/status", {"status": "closed"}),
    ("POST", "/acknowledge", {"root_cause": "x"}),
    ("DELETE", "", None),
])
async def test_fetch_failure_is_not_reported_as_missing(
    client: AsyncClient, db_session: AsyncSession, monkeypatch, reporter, admin, method, suffix, body
):
    incident_id = (await file_incident(client, reporter))["incident"]["id"]
    headers = auth_headers(admin)

    monkeypatch.setattr(db_session, "execute", failing_execute)
    resp = await client.request(method, f"/api/incidents/{incident_id}{suffix}", json=body, headers=headers)
    monkeypatch.undo()

    assert resp.status_code == 502
    assert resp.json() == {"error": "Failed to fetch incident", "code": "UPSTREAM_FAILURE"}
    assert await count(db_session, IncidentORM) == 1


@pytest.mark.asyncio
async def test_user_fetch_failure_is_upstream_failure(
    client: AsyncClient, db_session: AsyncSession, monkeypatch, admin, reporter
):
    headers = auth_headers(admin)
    reporter_id = reporter.id

    monkeypatch.setattr(db_session, "execute", failing_execute)
    resp = await client.get(f"/api/users/{reporter_id}", headers=headers)
    monkeypatch.undo()

    assert resp.status_code == 502
    assert resp.json()["code"] == "UPSTREAM_FAILURE"


@pytest.mark.asyncio
async def test_attachment_records_commit_failure(
    client: AsyncClient, db_session: AsyncSession, monkeypatch, reporter, blob_store
):
    """The incident survives; the stored blobs are removed and no attachment rows remain."""
    headers = auth_headers(reporter)
    real_commit = db_session.commit
    commits = []

    async def fail_after_first_commit():
        commits.append(1)
        if len(commits) > 1:
            await failing_commit()
        await real_commit()

    monkeypatch.setattr(db_session, "commit", fail_after_first_commit)
    resp = await client.post(
        "/api/incidents", data=INCIDENT_FORM, files=[("attachments", PNG)], headers=headers
    )
    monkeypatch.undo()

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["attachments"] == []
    assert body["incident"]["subject"] == INCIDENT_FORM["subject"]
    assert body["incident"]["status"] == "open"

    assert len(commits) == 2
    assert blob_store.keys() == []
    assert len(blob_store.removed) == 1
    assert await count(db_session, IncidentORM) == 1
    assert await count(db_session, IncidentAttachmentORM) == 0
