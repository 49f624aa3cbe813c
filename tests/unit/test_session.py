"""
Unit tests for the session state machine.
"""
import pytest

from crisissync.core.exceptions import AuthenticationFailed, PermissionDenied
from crisissync.core.permissions import UserRole, DISPATCH_RESOURCES, CREATE_REPORT
from crisissync.services.session import Session, SessionState


@pytest.fixture
def session():
    return Session(admin_secret="admin123")


def test_initial_state_is_unauthenticated(session):
    assert session.state == SessionState.UNAUTHENTICATED
    assert session.user is None
    assert session.role is None
    assert not session.is_authenticated


def test_citizen_login_always_succeeds(session):
    user = session.login(UserRole.CITIZEN)
    assert session.state == SessionState.CITIZEN_SESSION
    assert user.role == UserRole.CITIZEN
    assert user.id.startswith("citizen-")
    assert user.name == "Concerned Citizen"


def test_citizen_login_ignores_credential(session):
    session.login(UserRole.CITIZEN, "anything")
    assert session.state == SessionState.CITIZEN_SESSION


def test_admin_login_with_wrong_credential_stays_unauthenticated(session):
    with pytest.raises(AuthenticationFailed):
        session.login(UserRole.ADMIN, "wrong")
    assert session.state == SessionState.UNAUTHENTICATED
    assert session.user is None


def test_admin_login_without_credential_fails(session):
    with pytest.raises(AuthenticationFailed):
        session.login(UserRole.ADMIN)
    assert session.user is None


def test_admin_login_with_correct_credential(session):
    user = session.login(UserRole.ADMIN, "admin123")
    assert session.state == SessionState.ADMIN_SESSION
    assert session.role == UserRole.ADMIN
    assert user.id == "admin-01"
    assert user.department == "Central Dispatch"


def test_role_accepts_plain_string(session):
    session.login("ADMIN", "admin123")
    assert session.state == SessionState.ADMIN_SESSION


@pytest.mark.parametrize("role,credential", [(UserRole.CITIZEN, None), (UserRole.ADMIN, "admin123")])
def test_logout_from_any_state(session, role, credential):
    session.login(role, credential)
    session.logout()
    assert session.state == SessionState.UNAUTHENTICATED
    assert session.user is None
    assert not session.has_permission(CREATE_REPORT)


def test_logout_when_already_signed_out(session):
    session.logout()
    assert session.state == SessionState.UNAUTHENTICATED


def test_require_raises_with_message(session):
    session.login(UserRole.CITIZEN)
    with pytest.raises(PermissionDenied, match="Authorization required"):
        session.require(DISPATCH_RESOURCES, "Authorization required to dispatch resources.")
    session.require(CREATE_REPORT, "never raised")


def test_sessions_are_independent():
    first = Session(admin_secret="admin123")
    second = Session(admin_secret="admin123")
    first.login(UserRole.ADMIN, "admin123")
    assert second.state == SessionState.UNAUTHENTICATED
