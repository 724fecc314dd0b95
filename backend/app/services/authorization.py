"""
Authorization Guard.

Maps (role, action) to allow/deny. There is no role hierarchy: every action
lists the roles allowed to perform it, and adding an action means adding a
row to ACTION_ROLES.
"""
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Union

from backend.app.core.exceptions import Forbidden
from backend.app.core.security import Principal, Role


class Action(str, Enum):
    INCIDENT_CREATE = "incident:create"
    INCIDENT_READ = "incident:read"
    INCIDENT_ACKNOWLEDGE = "incident:acknowledge"
    INCIDENT_SET_STATUS = "incident:set_status"
    INCIDENT_DELETE = "incident:delete"
    USER_READ = "user:read"
    USER_CREATE = "user:create"
    USER_UPDATE = "user:update"
    USER_ARCHIVE = "user:archive"
    USER_DELETE = "user:delete"


ACTION_ROLES: dict[Action, FrozenSet[Role]] = {
    Action.INCIDENT_CREATE: frozenset({Role.USER}),
    Action.INCIDENT_READ: frozenset({Role.ADMIN, Role.SUPERUSER, Role.USER}),
    Action.INCIDENT_ACKNOWLEDGE: frozenset({Role.SUPERUSER, Role.ADMIN}),
    Action.INCIDENT_SET_STATUS: frozenset({Role.SUPERUSER, Role.ADMIN}),
    Action.INCIDENT_DELETE: frozenset({Role.ADMIN}),
    Action.USER_READ: frozenset({Role.ADMIN, Role.SUPERUSER, Role.USER}),
    Action.USER_CREATE: frozenset({Role.ADMIN, Role.SUPERUSER}),
    Action.USER_UPDATE: frozenset({Role.ADMIN}),
    Action.USER_ARCHIVE: frozenset({Role.ADMIN}),
    Action.USER_DELETE: frozenset({Role.ADMIN}),
}

# Roles that see every incident and user record
PRIVILEGED_ROLES: FrozenSet[Role] = frozenset({Role.ADMIN, Role.SUPERUSER})


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


def authorize(principal: Principal, allowed_roles: Union[Action, Iterable[Role]]) -> AccessDecision:
    """Pure role-membership check. Accepts an Action or an explicit role set."""
    roles = ACTION_ROLES[allowed_roles] if isinstance(allowed_roles, Action) else frozenset(allowed_roles)
    if principal.role in roles:
        return AccessDecision(allowed=True)
    return AccessDecision(
        allowed=False,
        reason=f"Role '{principal.role.value}' is not permitted to perform this action",
    )


def require(principal: Principal, allowed_roles: Union[Action, Iterable[Role]]) -> None:
    """Raise Forbidden unless the principal's role is allowed."""
    decision = authorize(principal, allowed_roles)
    if not decision:
        raise Forbidden("Access denied")


def is_privileged(principal: Principal) -> bool:
    return principal.role in PRIVILEGED_ROLES


def can_access_owned(principal: Principal, owner_id: str) -> bool:
    """Ownership rule applied after the role check: users only reach their own records."""
    return is_privileged(principal) or principal.id == owner_id
