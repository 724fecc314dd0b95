"""
Reviewer responses to an incident.

Append-only: each acknowledge action adds one row; rows are only removed
together with their incident.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from backend.app.core.database import Base


class IncidentResponseORM(Base):
    __tablename__ = "incident_responses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    incident_id = Column(
        String(36), ForeignKey("incidents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    investigation_findings = Column(Text, nullable=True)
    root_cause = Column(Text, nullable=True)
    action_taken = Column(Text, nullable=True)
    further_action_plan = Column(Text, nullable=True)
    acknowledged_by = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    incident = relationship("IncidentORM", back_populates="responses")

    def __repr__(self):
        return f"<IncidentResponse {self.id} for {self.incident_id} by {self.acknowledged_by}>"
