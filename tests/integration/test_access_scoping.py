"""Read paths: role check first, then the ownership rule for users."""
import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models.incident_orm import IncidentORM
from tests.helpers import auth_headers, file_incident


async def insert_incident(db: AsyncSession, owner, subject: str, created_at: datetime) -> IncidentORM:
    incident = IncidentORM(
        id=str(uuid.uuid4()),
        user_id=owner.id,
        subject=subject,
        date_of_incident=date(2026, 9, 30),
        source_of_incident="Audit",
        mistake_committed="Skipped review",
        preliminary_investigation=False,
        details_and_findings="Found in audit",
        status="open",
        created_at=created_at,
        updated_at=created_at,
    )
    db.add(incident)
    await db.commit()
    return incident


@pytest.mark.asyncio
async def test_user_lists_only_own_incidents(client: AsyncClient, reporter, other_reporter):
    mine = await file_incident(client, reporter, subject="Mine")
    await file_incident(client, other_reporter, subject="Theirs")

    resp = await client.get("/api/incidents", headers=auth_headers(reporter))
    assert resp.status_code == 200
    assert [i["id"] for i in resp.json()] == [mine["incident"]["id"]]


@pytest.mark.asyncio
async def test_privileged_roles_list_everything(client: AsyncClient, reporter, other_reporter, admin, superuser):
    await file_incident(client, reporter, subject="One")
    await file_incident(client, other_reporter, subject="Two")

    for reviewer in (admin, superuser):
        resp = await client.get("/api/incidents", headers=auth_headers(reviewer))
        assert resp.status_code == 200
        listing = resp.json()
        assert {i["subject"] for i in listing} == {"One", "Two"}
        assert {i["user"]["username"] for i in listing} == {"alice", "bob"}


@pytest.mark.asyncio
async def test_listing_is_newest_first(client: AsyncClient, db_session: AsyncSession, reporter, admin):
    now = datetime.now(timezone.utc)
    await insert_incident(db_session, reporter, "oldest", now - timedelta(days=2))
    await insert_incident(db_session, reporter, "newest", now)
    await insert_incident(db_session, reporter, "middle", now - timedelta(days=1))

    resp = await client.get("/api/incidents", headers=auth_headers(admin))
    assert [i["subject"] for i in resp.json()] == ["newest", "middle", "oldest"]


@pytest.mark.asyncio
async def test_empty_listing(client: AsyncClient, reporter):
    resp = await client.get("/api/incidents", headers=auth_headers(reporter))
    assert resp.status_code == 200
    assert resp.json() == []


@pytest.mark.asyncio
async def test_user_cannot_read_foreign_incident(client: AsyncClient, reporter, other_reporter):
    theirs = await file_incident(client, other_reporter)
    resp = await client.get(f"/api/incidents/{theirs['incident']['id']}", headers=auth_headers(reporter))
    assert resp.status_code == 403
    assert resp.json() == {"error": "Access denied", "code": "FORBIDDEN"}


@pytest.mark.asyncio
async def test_superuser_reads_any_incident(client: AsyncClient, reporter, superuser):
    created = await file_incident(client, reporter)
    resp = await client.get(f"/api/incidents/{created['incident']['id']}", headers=auth_headers(superuser))
    assert resp.status_code == 200
    assert resp.json()["user"]["id"] == reporter.id


@pytest.mark.asyncio
async def test_missing_incident_is_not_found_for_every_role(client: AsyncClient, reporter, superuser, admin):
    for user in (reporter, superuser, admin):
        resp = await client.get(f"/api/incidents/{uuid.uuid4()}", headers=auth_headers(user))
        assert resp.status_code == 404


@pytest.mark.asyncio
async def test_user_sees_only_own_user_record(client: AsyncClient, reporter, other_reporter, admin):
    resp = await client.get("/api/users", headers=auth_headers(reporter))
    assert resp.status_code == 200
    assert [u["username"] for u in resp.json()] == ["alice"]

    resp = await client.get(f"/api/users/{other_reporter.id}", headers=auth_headers(reporter))
    assert resp.status_code == 403

    resp = await client.get("/api/users", headers=auth_headers(admin))
    assert {u["username"] for u in resp.json()} == {"alice", "bob", "admin"}
