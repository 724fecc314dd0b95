"""
ORM Model for Incident Reports.

An incident exclusively owns its attachments and responses: deleting the
incident removes both, through the ORM cascade and ON DELETE CASCADE.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from backend.app.core.database import Base


class IncidentORM(Base):
    __tablename__ = "incidents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Owner, set once at creation
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    # Report fields
    subject = Column(String(500), nullable=False)
    date_of_incident = Column(Date, nullable=False)
    project_name = Column(String(255), nullable=True)
    source_of_incident = Column(Text, nullable=False)
    mistake_committed = Column(Text, nullable=False)
    preliminary_investigation = Column(Boolean, nullable=False, default=False)
    details_and_findings = Column(Text, nullable=False)
    suggestions = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default="open", index=True)  # IncidentStatus values

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    user = relationship("UserORM", lazy="raise")
    attachments = relationship(
        "IncidentAttachmentORM",
        back_populates="incident",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="IncidentAttachmentORM.created_at",
        lazy="raise",
    )
    responses = relationship(
        "IncidentResponseORM",
        back_populates="incident",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="IncidentResponseORM.created_at",
        lazy="raise",
    )

    def __repr__(self):
        return f"<Incident {self.id} [{self.status}] {self.subject!r}>"
