import pytest

from conftest import actor_for, make_lead, make_team, make_user
from leadflow.database.models.database import Closer
from leadflow.database.models.enums import UserRole, UserStatus
from leadflow.services.team_service import TeamService
from leadflow.services.user_service import UserService
from leadflow.utils.exceptions import (
    ConflictError,
    FailedPreconditionError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)


def test_register_profile_starts_pending(db, team):
    user = UserService(db).register_profile("new-1", email="new@example.com", display_name="New", team_id=team.id)
    assert user.role == UserRole.PENDING.value
    assert user.status == UserStatus.PENDING_APPROVAL.value

    with pytest.raises(ConflictError):
        UserService(db).register_profile("new-1")


def test_approve_user(db, staff):
    svc = UserService(db)
    svc.register_profile("new-1", team_id="team-north")

    assert [u.id for u in svc.list_pending_users(actor_for(staff["manager"]))] == ["new-1"]
    assert svc.list_pending_users(actor_for(staff["other_manager"])) == []

    with pytest.raises(PermissionDeniedError):
        svc.approve_user("new-1", actor_for(staff["other_manager"]))
    with pytest.raises(PermissionDeniedError):
        svc.list_pending_users(actor_for(staff["closer"]))

    user, message = svc.approve_user("new-1", actor_for(staff["manager"]))
    assert user.status == UserStatus.ACTIVE.value
    assert user.role == UserRole.SETTER.value
    assert user.approved_by == "manager-1"
    assert message == "User approved successfully"

    _, again = svc.approve_user("new-1", actor_for(staff["manager"]))
    assert again == "User is already approved"


def test_role_changes_keep_lineup_in_sync(db, staff):
    svc = UserService(db)
    manager = actor_for(staff["manager"])

    user, _ = svc.update_user_role("setter-1", "closer", manager)
    assert user.role == "closer"
    entry = db.get(Closer, "setter-1")
    assert entry.on_duty is False
    assert entry.lineup_order == 999

    _, message = svc.update_user_role("setter-1", "closer", manager)
    assert message == "no_change_needed"

    svc.update_user_role("setter-1", "manager", manager)
    assert db.get(Closer, "setter-1").role == "manager"

    svc.update_user_role("setter-1", "setter", manager)
    db.expire_all()
    assert db.get(Closer, "setter-1") is None


def test_role_change_rules(db, staff, other_team):
    svc = UserService(db)
    with pytest.raises(PermissionDeniedError):
        svc.update_user_role("setter-1", "admin", actor_for(staff["manager"]))
    with pytest.raises(InvalidArgumentError):
        svc.update_user_role("setter-1", "pending", actor_for(staff["admin"]))
    with pytest.raises(PermissionDeniedError):
        svc.update_user_role("setter-1", "closer", actor_for(staff["closer"]))
    with pytest.raises(NotFoundError):
        svc.update_user_role("ghost", "closer", actor_for(staff["admin"]))

    user, _ = svc.update_user_role("setter-1", "admin", actor_for(staff["admin"]))
    assert user.role == "admin"


def test_assign_team(db, staff, other_team):
    svc = UserService(db)
    closed = make_team(db, "Closed", team_id="team-closed", is_active=False)

    with pytest.raises(PermissionDeniedError):
        svc.assign_team("closer-1", other_team.id, actor_for(staff["manager"]))
    with pytest.raises(FailedPreconditionError):
        svc.assign_team("closer-1", closed.id, actor_for(staff["admin"]))

    user = svc.assign_team("closer-1", other_team.id, actor_for(staff["admin"]))
    assert user.team_id == other_team.id
    assert db.get(Closer, "closer-1").team_id == other_team.id


def test_teams_and_stats(db, staff):
    svc = TeamService(db)
    with pytest.raises(PermissionDeniedError):
        svc.create_team("East", actor_for(staff["manager"]))
    created = svc.create_team("East", actor_for(staff["admin"]), region_id="r-1")
    assert created.is_active is True

    assert [t.id for t in svc.list_teams(actor_for(staff["closer"]))] == ["team-north"]
    assert len(svc.list_teams(actor_for(staff["admin"]))) == 3

    make_lead(db, "team-north", assigned_closer_id="closer-1")
    make_lead(db, "team-north", status="completed", assigned_closer_id="closer-1")
    stats = svc.get_team_stats("team-north", actor_for(staff["manager"]))
    assert stats["total_leads"] == 2
    assert stats["by_status"] == {"waiting_assignment": 1, "completed": 1}
    assert stats["on_duty_closers"] == 2
    by_id = {c["id"]: c for c in stats["closers"]}
    assert by_id["closer-1"]["assigned_leads"] == 2

    with pytest.raises(PermissionDeniedError):
        svc.get_team_stats("team-south", actor_for(staff["manager"]))


def test_pending_users_cannot_act(db, team):
    pending = make_user(db, "p-1", "closer", team.id, status=UserStatus.PENDING_APPROVAL.value)
    assert actor_for(pending).is_active is False
