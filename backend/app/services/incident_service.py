"""
Incident Lifecycle Engine.

Owns the incident status machine and the operations that mutate incidents:
create, acknowledge, set status and delete. Every operation starts with an
authorization check and raises domain errors from core.exceptions.

Status is settable, not advanced: open, in-progress and closed may follow
each other in any order, so closed incidents can be reopened.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
import logging
import uuid
from typing import List, Optional, Sequence, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.app.core.exceptions import NotFound, UpstreamFailure, ValidationError
from backend.app.core.security import Principal
from backend.app.models.incident_attachment_orm import IncidentAttachmentORM
from backend.app.models.incident_orm import IncidentORM
from backend.app.models.incident_response_orm import IncidentResponseORM
from backend.app.schemas.incidents import IncidentStatus
from backend.app.services.attachment_service import AttachmentManager, AttachmentUpload
from backend.app.services.authorization import Action, require

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "subject",
    "date_of_incident",
    "source_of_incident",
    "mistake_committed",
    "details_and_findings",
)


@dataclass
class IncidentFields:
    subject: Optional[str] = None
    date_of_incident: Optional[str] = None
    project_name: Optional[str] = None
    source_of_incident: Optional[str] = None
    mistake_committed: Optional[str] = None
    preliminary_investigation: Union[bool, str, None] = None
    details_and_findings: Optional[str] = None
    suggestions: Optional[str] = None


@dataclass
class ResponseFields:
    investigation_findings: Optional[str] = None
    root_cause: Optional[str] = None
    action_taken: Optional[str] = None
    further_action_plan: Optional[str] = None


@dataclass
class CreatedIncident:
    incident: IncidentORM
    attachments: List[IncidentAttachmentORM] = field(default_factory=list)
    failed_files: List[str] = field(default_factory=list)


@dataclass
class Acknowledgement:
    response: IncidentResponseORM
    incident: IncidentORM


@dataclass
class DeletionOutcome:
    incident_id: str
    removed_references: List[str] = field(default_factory=list)
    orphaned_references: List[str] = field(default_factory=list)

    @property
    def storage_cleanup_failed(self) -> bool:
        return bool(self.orphaned_references)


def parse_status(value: Optional[str]) -> IncidentStatus:
    try:
        return IncidentStatus(value)
    except ValueError:
        raise ValidationError("Invalid status")


def normalize_preliminary_investigation(value: Union[bool, str, None]) -> bool:
    """Native booleans pass through; of strings only the literal 'true' counts."""
    return value is True or value == "true"


def _parse_incident_date(value: str) -> date:
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError("date_of_incident must be an ISO date (YYYY-MM-DD)")


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


async def get_incident_or_404(session: AsyncSession, incident_id: str, *options) -> IncidentORM:
    """Single-row fetch that tells a missing incident apart from a storage failure."""
    query = (
        select(IncidentORM)
        .where(IncidentORM.id == incident_id)
        .options(*options)
        .execution_options(populate_existing=True)
    )
    try:
        result = await session.execute(query)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching incident {incident_id}: {e}")
        raise UpstreamFailure("Failed to fetch incident") from e
    incident = result.scalar_one_or_none()
    if not incident:
        raise NotFound(f"Incident {incident_id} not found")
    return incident


async def _commit(session: AsyncSession, failure_message: str) -> None:
    try:
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"{failure_message}: {e}", exc_info=True)
        raise UpstreamFailure(failure_message) from e


async def create_incident(
    session: AsyncSession,
    principal: Principal,
    fields: IncidentFields,
    files: Sequence[AttachmentUpload],
    attachments: AttachmentManager,
) -> CreatedIncident:
    """
    File a new incident as the principal, status always 'open'.

    The incident row is committed before any upload. A file that fails to
    store is logged and skipped; the incident is kept either way.
    """
    require(principal, Action.INCIDENT_CREATE)
    attachments.validate_batch(files)

    missing = [name for name in REQUIRED_FIELDS if _blank(getattr(fields, name))]
    if missing:
        raise ValidationError(f"Required fields are missing: {', '.join(missing)}")

    now = datetime.now(timezone.utc)
    incident = IncidentORM(
        id=str(uuid.uuid4()),
        user_id=principal.id,
        subject=fields.subject.strip(),
        date_of_incident=_parse_incident_date(fields.date_of_incident),
        project_name=fields.project_name,
        source_of_incident=fields.source_of_incident,
        mistake_committed=fields.mistake_committed,
        preliminary_investigation=normalize_preliminary_investigation(fields.preliminary_investigation),
        details_and_findings=fields.details_and_findings,
        suggestions=fields.suggestions,
        status=IncidentStatus.OPEN.value,
        created_at=now,
        updated_at=now,
    )
    session.add(incident)
    await _commit(session, "Failed to create incident")
    logger.info(f"Incident created: {incident.id} (user={principal.id})")

    outcome = CreatedIncident(incident=incident)
    for index, upload in enumerate(files):
        try:
            # Distinct millisecond per file keeps keys unique within a batch
            reference = await attachments.store(
                incident.id, upload, uploaded_at=now + timedelta(milliseconds=index)
            )
        except UpstreamFailure as e:
            logger.error(
                f"Error uploading file '{upload.filename}' for incident {incident.id}: {e}",
                extra={"extra_data": {"incident_id": incident.id, "file_name": upload.filename}},
            )
            outcome.failed_files.append(upload.filename)
            continue

        record = IncidentAttachmentORM(
            id=str(uuid.uuid4()),
            incident_id=incident.id,
            file_url=reference.path,
            file_type=reference.content_type,
            created_at=datetime.now(timezone.utc),
        )
        session.add(record)
        outcome.attachments.append(record)

    if outcome.attachments:
        try:
            await session.commit()
        except SQLAlchemyError as e:
            stored = [a.file_url for a in outcome.attachments]
            await session.rollback()
            # Rollback expires the committed incident row
            await session.refresh(incident)
            logger.error(f"Error saving attachment records for incident {incident.id}: {e}", exc_info=True)
            try:
                await attachments.remove(stored)
            except UpstreamFailure as cleanup_error:
                logger.error(f"Could not remove unreferenced blobs {stored}: {cleanup_error}")
            outcome.failed_files.extend(stored)
            outcome.attachments = []

    return outcome


async def acknowledge_incident(
    session: AsyncSession,
    principal: Principal,
    incident_id: str,
    fields: ResponseFields,
    status: Optional[str] = None,
) -> Acknowledgement:
    """
    Append a reviewer response and optionally set the status.

    The response insert and the status update are committed as one
    transaction: either both are stored or neither is.
    """
    require(principal, Action.INCIDENT_ACKNOWLEDGE)
    new_status = parse_status(status) if status else None

    incident = await get_incident_or_404(session, incident_id)
    now = datetime.now(timezone.utc)

    response = IncidentResponseORM(
        id=str(uuid.uuid4()),
        incident_id=incident.id,
        investigation_findings=fields.investigation_findings,
        root_cause=fields.root_cause,
        action_taken=fields.action_taken,
        further_action_plan=fields.further_action_plan,
        acknowledged_by=principal.id,
        created_at=now,
    )
    session.add(response)
    if new_status:
        incident.status = new_status.value
        incident.updated_at = now

    await _commit(session, "Failed to acknowledge incident; no changes were recorded")
    logger.info(
        f"Incident {incident.id} acknowledged by {principal.id}"
        + (f", status -> {new_status.value}" if new_status else "")
    )
    return Acknowledgement(response=response, incident=incident)


async def set_incident_status(
    session: AsyncSession,
    principal: Principal,
    incident_id: str,
    status: Optional[str],
) -> IncidentORM:
    require(principal, Action.INCIDENT_SET_STATUS)
    new_status = parse_status(status)

    incident = await get_incident_or_404(session, incident_id)
    previous = incident.status
    incident.status = new_status.value
    incident.updated_at = datetime.now(timezone.utc)
    await _commit(session, "Failed to update incident status")
    logger.info(f"Incident {incident.id} status {previous} -> {new_status.value} by {principal.id}")
    return incident


async def delete_incident(
    session: AsyncSession,
    principal: Principal,
    incident_id: str,
    attachments: AttachmentManager,
) -> DeletionOutcome:
    """
    Remove the incident's blobs, then the incident row (cascading to
    attachment and response rows).

    A failed blob removal does not stop the row deletion; the references
    left behind are returned in the outcome and logged.
    """
    require(principal, Action.INCIDENT_DELETE)
    incident = await get_incident_or_404(session, incident_id, selectinload(IncidentORM.attachments))

    outcome = DeletionOutcome(incident_id=incident.id)
    references = [a.file_url for a in incident.attachments]
    if references:
        try:
            outcome.removed_references = await attachments.remove(references)
        except UpstreamFailure as e:
            outcome.orphaned_references = references
            logger.error(
                f"Failed to remove attachment blobs for incident {incident.id}; deleting records anyway: {e}",
                extra={"extra_data": {"incident_id": incident.id, "orphaned_references": references}},
            )

    await session.delete(incident)
    await _commit(session, "Failed to delete incident")
    logger.info(f"Incident {incident_id} deleted by {principal.id}")
    return outcome
