import os
import tempfile

# Settings are read once at import, so the test configuration has to exist
# before anything from leadflow is imported.
_TMP_DIR = tempfile.mkdtemp(prefix="leadflow-tests-")
TEST_DB_PATH = os.path.join(_TMP_DIR, "leadflow-test.db")
TEST_CONFIG_PATH = os.path.join(_TMP_DIR, "config.yaml")

with open(TEST_CONFIG_PATH, "w") as f:
    f.write(
        f"""
project_name: "LeadFlow Test"
service_name: "LeadFlow App"
version: "1.0.0-test"
log_level: "WARNING"
database:
  url: "sqlite:///{TEST_DB_PATH}"
  create_tables: false
security:
  secret_key: "test-secret-key-for-jwt-signing"
dispatch:
  timezone: "America/Los_Angeles"
  auto_assign: true
notifications:
  enabled: false
"""
    )
os.environ["LEADFLOW_CONFIG"] = TEST_CONFIG_PATH

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from leadflow.core.security import create_access_token  # noqa: E402
from leadflow.database.connection import DatabasePool  # noqa: E402
from leadflow.database.models.base import Base  # noqa: E402
from leadflow.database.models.database import AppUser, Closer, Lead, Team  # noqa: E402
from leadflow.database.models.enums import (  # noqa: E402
    CLOSING_ROLES,
    DispatchType,
    LeadStatus,
    UserStatus,
)
from leadflow.database.session import (  # noqa: E402
    get_session,
    init_db,
    init_session_factory,
    reset_session_factory,
)
from leadflow.main import app  # noqa: E402
from leadflow.services.authorization import ActorContext  # noqa: E402


@pytest.fixture(autouse=True)
def database():
    """Fresh tables for every test"""
    DatabasePool.close()
    reset_session_factory()
    DatabasePool.initialize()
    init_session_factory()
    engine = DatabasePool.get_engine()
    Base.metadata.drop_all(bind=engine)
    init_db()
    yield engine
    DatabasePool.close()
    reset_session_factory()


@pytest.fixture
def db():
    session = get_session()
    yield session
    session.close()


@pytest.fixture
def session_factory():
    """Open extra independent sessions (closed at teardown)"""
    opened = []

    def _open():
        session = get_session()
        opened.append(session)
        return session

    yield _open
    for session in opened:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


def auth_headers(uid: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(uid)}"}


def make_team(db, name="North", team_id=None, is_active=True) -> Team:
    team = Team(id=team_id, name=name, is_active=is_active) if team_id else Team(name=name, is_active=is_active)
    db.add(team)
    db.commit()
    return team


def make_user(db, uid, role, team_id, on_duty=False, lineup_order=999, status=UserStatus.ACTIVE.value) -> AppUser:
    """User plus, for closing roles, a lineup entry"""
    user = AppUser(
        id=uid,
        email=f"{uid}@example.com",
        display_name=uid.replace("-", " ").title(),
        role=role,
        team_id=team_id,
        status=status,
    )
    db.add(user)
    if role in CLOSING_ROLES:
        db.add(Closer(
            id=uid,
            name=user.display_name,
            team_id=team_id,
            role=role,
            on_duty=on_duty,
            lineup_order=lineup_order,
        ))
    db.commit()
    return user


def make_lead(db, team_id, status=LeadStatus.WAITING_ASSIGNMENT.value, **fields) -> Lead:
    values = dict(
        customer_name="Jane Customer",
        customer_phone="555-0101",
        address="1 Main St",
        status=status,
        dispatch_type=DispatchType.IMMEDIATE.value,
        team_id=team_id,
        setter_id="setter-1",
        setter_name="Setter 1",
    )
    values.update(fields)
    lead = Lead(**values)
    db.add(lead)
    db.commit()
    return lead


def actor_for(user: AppUser) -> ActorContext:
    return ActorContext.from_user(user)


@pytest.fixture
def team(db):
    return make_team(db, "North", team_id="team-north")


@pytest.fixture
def other_team(db):
    return make_team(db, "South", team_id="team-south")


@pytest.fixture
def staff(db, team, other_team):
    """Active users of the north team plus a manager of the south team"""
    return {
        "admin": make_user(db, "admin-1", "admin", team.id),
        "manager": make_user(db, "manager-1", "manager", team.id),
        "setter": make_user(db, "setter-1", "setter", team.id),
        "closer": make_user(db, "closer-1", "closer", team.id, on_duty=True, lineup_order=100),
        "closer2": make_user(db, "closer-2", "closer", team.id, on_duty=True, lineup_order=200),
        "other_manager": make_user(db, "manager-2", "manager", other_team.id),
    }
