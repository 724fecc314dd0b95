"""
Access-Scoped Query Layer.

Read paths for incidents and users. Role authorization runs first; the
ownership rule then limits `user`-role principals to their own records.
"""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.app.core.exceptions import Forbidden, NotFound, UpstreamFailure
from backend.app.core.security import Principal
from backend.app.models.incident_attachment_orm import IncidentAttachmentORM
from backend.app.models.incident_orm import IncidentORM
from backend.app.models.incident_response_orm import IncidentResponseORM
from backend.app.models.user_orm import UserORM
from backend.app.schemas.incidents import (
    AttachmentView, IncidentDetail, IncidentListItem, IncidentView, OwnerSummary, ResponseView,
)
from backend.app.schemas.users import UserView
from backend.app.services.attachment_service import AttachmentManager
from backend.app.services.authorization import Action, can_access_owned, is_privileged, require
from backend.app.services.incident_service import get_incident_or_404

logger = logging.getLogger(__name__)


def to_incident_view(incident: IncidentORM) -> IncidentView:
    return IncidentView.model_validate(incident)


def to_response_view(response: IncidentResponseORM) -> ResponseView:
    return ResponseView.model_validate(response)


def to_attachment_view(attachment: IncidentAttachmentORM, signed_url: Optional[str] = None) -> AttachmentView:
    view = AttachmentView.model_validate(attachment)
    view.signed_url = signed_url
    return view


def _to_list_item(incident: IncidentORM) -> IncidentListItem:
    return IncidentListItem(
        **to_incident_view(incident).model_dump(),
        user=OwnerSummary.model_validate(incident.user) if incident.user else None,
        incident_responses=[to_response_view(r) for r in incident.responses],
    )


async def _execute(session: AsyncSession, query, what: str):
    try:
        return await session.execute(query)
    except SQLAlchemyError as e:
        logger.error(f"Error fetching {what}: {e}")
        raise UpstreamFailure(f"Failed to fetch {what}") from e


async def list_incidents(session: AsyncSession, principal: Principal) -> List[IncidentListItem]:
    """All incidents newest-first for admin/superuser; own incidents only for users."""
    require(principal, Action.INCIDENT_READ)
    query = (
        select(IncidentORM)
        .options(selectinload(IncidentORM.user), selectinload(IncidentORM.responses))
        .order_by(IncidentORM.created_at.desc())
        .execution_options(populate_existing=True)
    )
    if not is_privileged(principal):
        query = query.where(IncidentORM.user_id == principal.id)

    result = await _execute(session, query, "incidents")
    return [_to_list_item(i) for i in result.scalars().all()]


async def get_incident(
    session: AsyncSession,
    principal: Principal,
    incident_id: str,
    attachments: AttachmentManager,
) -> IncidentDetail:
    """
    Incident detail with owner summary, responses and attachments.
    Each attachment gets a freshly signed URL; a signing failure leaves it null.
    """
    require(principal, Action.INCIDENT_READ)
    incident = await get_incident_or_404(
        session,
        incident_id,
        selectinload(IncidentORM.user),
        selectinload(IncidentORM.attachments),
        selectinload(IncidentORM.responses),
    )
    if not can_access_owned(principal, incident.user_id):
        raise Forbidden("Access denied")

    attachment_views = []
    for attachment in incident.attachments:
        signed_url = None
        try:
            signed_url = await attachments.sign(attachment.file_url)
        except UpstreamFailure as e:
            logger.warning(f"Could not sign attachment {attachment.id} of incident {incident.id}: {e}")
        attachment_views.append(to_attachment_view(attachment, signed_url))

    return IncidentDetail(
        **_to_list_item(incident).model_dump(),
        incident_attachments=attachment_views,
    )


async def get_user_or_404(session: AsyncSession, user_id: str) -> UserORM:
    query = select(UserORM).where(UserORM.id == user_id).execution_options(populate_existing=True)
    result = await _execute(session, query, "user")
    user = result.scalar_one_or_none()
    if not user:
        raise NotFound(f"User {user_id} not found")
    return user


async def list_users(session: AsyncSession, principal: Principal) -> List[UserView]:
    """Every user newest-first for admin/superuser; a user sees only their own record."""
    require(principal, Action.USER_READ)
    query = select(UserORM).order_by(UserORM.created_at.desc())
    if not is_privileged(principal):
        query = query.where(UserORM.id == principal.id)
    result = await _execute(session, query, "users")
    return [UserView.model_validate(u) for u in result.scalars().all()]


async def get_user(session: AsyncSession, principal: Principal, user_id: str) -> UserView:
    require(principal, Action.USER_READ)
    user = await get_user_or_404(session, user_id)
    if not can_access_owned(principal, user.id):
        raise Forbidden("Access denied")
    return UserView.model_validate(user)
