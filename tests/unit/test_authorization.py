"""Authorization Guard: role/action table and the ownership rule."""
import pytest

from backend.app.core.exceptions import Forbidden
from backend.app.core.security import Principal, Role
from backend.app.services.authorization import (
    ACTION_ROLES,
    Action,
    authorize,
    can_access_owned,
    is_privileged,
    require,
)


def principal(role: Role, pid: str = "p-1") -> Principal:
    return Principal(id=pid, role=role)


@pytest.mark.parametrize("action,allowed", [
    (Action.INCIDENT_CREATE, {Role.USER}),
    (Action.INCIDENT_READ, {Role.ADMIN, Role.SUPERUSER, Role.USER}),
    (Action.INCIDENT_ACKNOWLEDGE, {Role.ADMIN, Role.SUPERUSER}),
    (Action.INCIDENT_SET_STATUS, {Role.ADMIN, Role.SUPERUSER}),
    (Action.INCIDENT_DELETE, {Role.ADMIN}),
    (Action.USER_CREATE, {Role.ADMIN, Role.SUPERUSER}),
    (Action.USER_UPDATE, {Role.ADMIN}),
    (Action.USER_ARCHIVE, {Role.ADMIN}),
    (Action.USER_DELETE, {Role.ADMIN}),
])
def test_action_table(action, allowed):
    for role in Role:
        assert bool(authorize(principal(role), action)) is (role in allowed), (action, role)


def test_every_action_has_a_row():
    assert set(ACTION_ROLES) == set(Action)


def test_admin_cannot_create_incident():
    """No role hierarchy: admin is not implicitly allowed to file incidents."""
    decision = authorize(principal(Role.ADMIN), Action.INCIDENT_CREATE)
    assert not decision
    assert "admin" in decision.reason


def test_explicit_role_set():
    assert authorize(principal(Role.SUPERUSER), [Role.SUPERUSER])
    assert not authorize(principal(Role.USER), [Role.SUPERUSER, Role.ADMIN])


def test_require_raises_forbidden():
    with pytest.raises(Forbidden) as exc:
        require(principal(Role.USER), Action.INCIDENT_DELETE)
    assert exc.value.status_code == 403
    assert exc.value.message == "Access denied"


def test_require_passes_silently():
    assert require(principal(Role.ADMIN), Action.INCIDENT_DELETE) is None


def test_ownership_rule():
    assert can_access_owned(principal(Role.USER, "u-1"), "u-1")
    assert not can_access_owned(principal(Role.USER, "u-1"), "u-2")
    assert can_access_owned(principal(Role.SUPERUSER, "s-1"), "u-2")
    assert can_access_owned(principal(Role.ADMIN, "a-1"), "u-2")


def test_privileged_roles():
    assert is_privileged(principal(Role.ADMIN))
    assert is_privileged(principal(Role.SUPERUSER))
    assert not is_privileged(principal(Role.USER))
