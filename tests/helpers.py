"""Shared request helpers for the API tests."""
from typing import Dict

from httpx import AsyncClient

from backend.app.core.security import Role, create_principal_token
from backend.app.models.user_orm import UserORM

TEST_PASSWORD = "correct-horse-battery"

INCIDENT_FORM = {
    "subject": "Wrong config pushed to staging",
    "date_of_incident": "2026-10-01",
    "project_name": "Billing",
    "source_of_incident": "Deployment pipeline",
    "mistake_committed": "Applied production values to staging",
    "preliminary_investigation": "true",
    "details_and_findings": "Rollback performed within 10 minutes",
    "suggestions": "Add a config diff gate",
}


def auth_headers(user: UserORM) -> Dict[str, str]:
    token = create_principal_token(user.id, Role(user.role))
    return {"Authorization": f"Bearer {token}"}


async def file_incident(client: AsyncClient, user: UserORM, files=None, **overrides) -> dict:
    """Create an incident through the API and return the response body."""
    form = {**INCIDENT_FORM, **overrides}
    resp = await client.post("/api/incidents", data=form, files=files, headers=auth_headers(user))
    assert resp.status_code == 201, resp.text
    return resp.json()
