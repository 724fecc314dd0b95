"""Models package."""

from backend.app.models.user_orm import UserORM
from backend.app.models.incident_orm import IncidentORM
from backend.app.models.incident_attachment_orm import IncidentAttachmentORM
from backend.app.models.incident_response_orm import IncidentResponseORM

__all__ = [
    "UserORM",
    "IncidentORM",
    "IncidentAttachmentORM",
    "IncidentResponseORM",
]
