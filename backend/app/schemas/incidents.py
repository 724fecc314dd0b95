"""
Incident Report Schemas and Enums.

Response shapes returned by the incident endpoints, plus the JSON bodies
accepted by acknowledge and status update.
"""
from enum import Enum
from typing import Optional, List
from datetime import date, datetime
from pydantic import BaseModel


class IncidentStatus(str, Enum):
    """Settable incident states. Any state may follow any other."""
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    CLOSED = "closed"


class OwnerSummary(BaseModel):
    id: str
    username: str
    department: Optional[str] = None

    class Config:
        from_attributes = True


class AttachmentView(BaseModel):
    id: str
    incident_id: str
    file_url: str
    file_type: str
    created_at: Optional[datetime] = None
    signed_url: Optional[str] = None

    class Config:
        from_attributes = True


class ResponseView(BaseModel):
    id: str
    incident_id: str
    investigation_findings: Optional[str] = None
    root_cause: Optional[str] = None
    action_taken: Optional[str] = None
    further_action_plan: Optional[str] = None
    acknowledged_by: str
    created_at: datetime

    class Config:
        from_attributes = True


class IncidentView(BaseModel):
    id: str
    user_id: str
    subject: str
    date_of_incident: date
    project_name: Optional[str] = None
    source_of_incident: str
    mistake_committed: str
    preliminary_investigation: bool
    details_and_findings: str
    suggestions: Optional[str] = None
    status: IncidentStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class IncidentListItem(IncidentView):
    user: Optional[OwnerSummary] = None
    incident_responses: List[ResponseView] = []


class IncidentDetail(IncidentListItem):
    incident_attachments: List[AttachmentView] = []


class AcknowledgeRequest(BaseModel):
    """Body of POST /incidents/{id}/acknowledge. Status is checked by the lifecycle engine."""
    investigation_findings: Optional[str] = None
    root_cause: Optional[str] = None
    action_taken: Optional[str] = None
    further_action_plan: Optional[str] = None
    status: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = None


class IncidentCreated(BaseModel):
    message: str
    incident: IncidentView
    attachments: List[AttachmentView] = []


class IncidentAcknowledged(BaseModel):
    message: str
    response: ResponseView
    incident: IncidentView


class IncidentStatusUpdated(BaseModel):
    message: str
    incident: IncidentView


class IncidentDeleted(BaseModel):
    message: str
    storage_cleanup: str  # "ok" | "failed"
    orphaned_references: List[str] = []
