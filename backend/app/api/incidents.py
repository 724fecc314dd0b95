"""
Incident Report API Router.

Thin HTTP layer over the lifecycle engine (writes) and the access-scoped
query layer (reads). Authorization happens inside the services; create also
checks the role before reading any upload.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.context import get_attachment_manager
from backend.app.core.database import get_db
from backend.app.core.security import Principal, get_current_principal
from backend.app.schemas.incidents import (
    AcknowledgeRequest,
    IncidentAcknowledged,
    IncidentCreated,
    IncidentDeleted,
    IncidentDetail,
    IncidentListItem,
    IncidentStatusUpdated,
    StatusUpdateRequest,
)
from backend.app.services import incident_service, query_service
from backend.app.services.attachment_service import AttachmentManager, AttachmentUpload
from backend.app.services.authorization import Action, require

router = APIRouter()


@router.get("", response_model=List[IncidentListItem])
async def list_incidents(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """List incidents. Admins and superusers see all; users see their own."""
    return await query_service.list_incidents(db, principal)


@router.get("/{incident_id}", response_model=IncidentDetail)
async def get_incident(
    incident_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    attachments: AttachmentManager = Depends(get_attachment_manager),
):
    """Incident detail with signed attachment URLs (valid for one hour from now)."""
    return await query_service.get_incident(db, principal, incident_id, attachments)


@router.post("", response_model=IncidentCreated, status_code=201)
async def create_incident(
    subject: Optional[str] = Form(None),
    date_of_incident: Optional[str] = Form(None),
    project_name: Optional[str] = Form(None),
    source_of_incident: Optional[str] = Form(None),
    mistake_committed: Optional[str] = Form(None),
    preliminary_investigation: Optional[str] = Form(None),
    details_and_findings: Optional[str] = Form(None),
    suggestions: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None, alias="attachments"),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    attachments: AttachmentManager = Depends(get_attachment_manager),
):
    """
    Report an incident (users only). Multipart form; up to 10 image/video
    files in the `attachments` field, 10MB each. Role and batch limits are
    checked before any file is read.
    """
    require(principal, Action.INCIDENT_CREATE)
    attachments.validate_batch(files or [])

    uploads = []
    for f in files or []:
        uploads.append(AttachmentUpload(
            filename=f.filename or "file",
            content_type=f.content_type or "application/octet-stream",
            data=await f.read(),
        ))

    fields = incident_service.IncidentFields(
        subject=subject,
        date_of_incident=date_of_incident,
        project_name=project_name,
        source_of_incident=source_of_incident,
        mistake_committed=mistake_committed,
        preliminary_investigation=preliminary_investigation,
        details_and_findings=details_and_findings,
        suggestions=suggestions,
    )
    created = await incident_service.create_incident(db, principal, fields, uploads, attachments)
    return IncidentCreated(
        message="Incident reported successfully",
        incident=query_service.to_incident_view(created.incident),
        attachments=[query_service.to_attachment_view(a) for a in created.attachments],
    )


@router.post("/{incident_id}/acknowledge", response_model=IncidentAcknowledged)
async def acknowledge_incident(
    incident_id: str,
    payload: Optional[AcknowledgeRequest] = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Record a reviewer response (superuser/admin), optionally setting the status."""
    payload = payload or AcknowledgeRequest()
    fields = incident_service.ResponseFields(
        investigation_findings=payload.investigation_findings,
        root_cause=payload.root_cause,
        action_taken=payload.action_taken,
        further_action_plan=payload.further_action_plan,
    )
    ack = await incident_service.acknowledge_incident(db, principal, incident_id, fields, payload.status)
    return IncidentAcknowledged(
        message="Incident acknowledged successfully",
        response=query_service.to_response_view(ack.response),
        incident=query_service.to_incident_view(ack.incident),
    )


@router.patch("/{incident_id}/status", response_model=IncidentStatusUpdated)
async def update_incident_status(
    incident_id: str,
    payload: Optional[StatusUpdateRequest] = None,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """Set the incident status (superuser/admin)."""
    status = payload.status if payload else None
    incident = await incident_service.set_incident_status(db, principal, incident_id, status)
    return IncidentStatusUpdated(
        message="Incident status updated successfully",
        incident=query_service.to_incident_view(incident),
    )


@router.delete("/{incident_id}", response_model=IncidentDeleted)
async def delete_incident(
    incident_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    attachments: AttachmentManager = Depends(get_attachment_manager),
):
    """Delete an incident with its attachments and responses (admin only)."""
    outcome = await incident_service.delete_incident(db, principal, incident_id, attachments)
    return IncidentDeleted(
        message="Incident deleted successfully",
        storage_cleanup="failed" if outcome.storage_cleanup_failed else "ok",
        orphaned_references=outcome.orphaned_references,
    )
