"""
Shared fixtures. Every test gets a fresh file-backed SQLite schema; time is
injected explicitly so nothing depends on the wall clock.
"""
import os
import tempfile

import pytest

# Test environment: must be set before infrabook.config is imported
_DB_FILE = os.path.join(tempfile.mkdtemp(prefix="infrabook-tests-"), "test.db")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["SWEEP_ENABLED"] = "false"
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""
os.environ["FACILITY_TIMEZONE"] = ""

import infrabook.models  # noqa: F401,E402
from infrabook.core.constants import QUESTION_DOCUMENT, ROLE_ADMIN, ROLE_MANAGER, ROLE_USER  # noqa: E402
from infrabook.db.base import Base  # noqa: E402
from infrabook.db.session import SessionLocal, engine  # noqa: E402
from infrabook.models.infrastructure import Infrastructure  # noqa: E402
from infrabook.models.infrastructure_manager import InfrastructureManager  # noqa: E402
from infrabook.models.question import QuestionDefinition  # noqa: E402
from infrabook.services.collaborators import Actor, ManagerTableAccessControl, RollingDayGuestPolicy  # noqa: E402
from tests.helpers import MANAGER_EMAIL, USER_EMAIL, FakeNotifier  # noqa: E402


# ---------------------------------------------------------
# DB setup
# ---------------------------------------------------------
@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    engine.dispose()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def infra(db):
    row = Infrastructure(name="Wind Tunnel", location="Hall B", is_active=True, max_booking_minutes=240)
    db.add(row)
    db.flush()
    db.add(InfrastructureManager(infrastructure_id=row.id, user_email=MANAGER_EMAIL, email_notifications=True))
    db.commit()
    return row


@pytest.fixture
def access(db):
    return ManagerTableAccessControl(db)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def policy():
    return RollingDayGuestPolicy(limit=1)


@pytest.fixture
def manager():
    return Actor(email=MANAGER_EMAIL, role=ROLE_MANAGER)


@pytest.fixture
def admin():
    return Actor(email="admin@example.com", role=ROLE_ADMIN)


@pytest.fixture
def user():
    return Actor(email=USER_EMAIL, role=ROLE_USER)


@pytest.fixture
def document_question(db, infra):
    q = QuestionDefinition(
        infrastructure_id=infra.id,
        question_text="Safety certificate",
        question_type=QUESTION_DOCUMENT,
        is_required=True,
        display_order=1,
    )
    db.add(q)
    db.commit()
    return q
