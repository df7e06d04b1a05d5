import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.db import Base, enable_sqlite_transactions, get_db  # noqa: E402

PASSWORD = "correct-horse-battery"


@pytest.fixture()
def engine():
    eng = enable_sqlite_transactions(
        create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture()
def db_session(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def _no_event_fanout():
    """Events are queued after commit; tests never reach a broker."""
    with patch("app.tasks.events.process_event.delay") as mock_delay:
        yield mock_delay


@pytest.fixture()
def client(db_session):
    from app.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------------


@pytest.fixture()
def agency(db_session):
    from app.models.directory import Agency

    a = Agency(name=f"Water Board {uuid.uuid4().hex[:8]}", short_name="WB")
    db_session.add(a)
    db_session.commit()
    db_session.refresh(a)
    return a


@pytest.fixture()
def other_agency(db_session):
    from app.models.directory import Agency

    a = Agency(name=f"Roads Authority {uuid.uuid4().hex[:8]}", short_name="RA")
    db_session.add(a)
    db_session.commit()
    db_session.refresh(a)
    return a


@pytest.fixture()
def category(db_session, agency):
    from app.models.directory import Category

    c = Category(name=f"Water {uuid.uuid4().hex[:8]}", default_agency_id=agency.id)
    db_session.add(c)
    db_session.commit()
    db_session.refresh(c)
    return c


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


def _make_actor(db_session, kind, **fields):
    from app.services.credentials import credentials

    fields.setdefault("name", f"{kind.value.title()} User")
    fields.setdefault("email", f"{kind.value}-{uuid.uuid4().hex[:8]}@example.com")
    fields.setdefault("password", PASSWORD)
    return credentials.create_actor(db_session, kind, fields)


@pytest.fixture()
def make_actor(db_session):
    def _factory(kind, **fields):
        return _make_actor(db_session, kind, **fields)

    return _factory


@pytest.fixture()
def citizen(db_session):
    from app.models.actor import ActorKind

    return _make_actor(db_session, ActorKind.citizen)


@pytest.fixture()
def admin(db_session):
    from app.models.actor import ActorKind

    return _make_actor(db_session, ActorKind.staff, role="admin")


@pytest.fixture()
def moderator(db_session):
    from app.models.actor import ActorKind

    return _make_actor(db_session, ActorKind.staff, role="moderator")


@pytest.fixture()
def agent(db_session, agency):
    from app.models.actor import ActorKind

    return _make_actor(db_session, ActorKind.agent, agency_id=agency.id)


@pytest.fixture()
def foreign_agent(db_session, other_agency):
    from app.models.actor import ActorKind

    return _make_actor(db_session, ActorKind.agent, agency_id=other_agency.id)


@pytest.fixture()
def issued_identity(db_session):
    """(identity, plaintext access code)"""
    from app.services.access_codes import identity_codes

    return identity_codes.issue(db_session)


@pytest.fixture()
def anonymous_identity(issued_identity):
    return issued_identity[0]


# ---------------------------------------------------------------------------
# Bearer headers
# ---------------------------------------------------------------------------


def _headers(actor) -> dict:
    from app.services.tokens import tokens

    return {"Authorization": f"Bearer {tokens.issue(actor)}"}


@pytest.fixture()
def citizen_headers(citizen):
    return _headers(citizen)


@pytest.fixture()
def admin_headers(admin):
    return _headers(admin)


@pytest.fixture()
def agent_headers(agent):
    return _headers(agent)


@pytest.fixture()
def anonymous_headers(anonymous_identity):
    return _headers(anonymous_identity)


@pytest.fixture()
def complaint(db_session, citizen, category):
    from app.schemas.complaint import ComplaintCreate
    from app.services.complaints import complaints

    return complaints.submit(
        db_session,
        citizen,
        ComplaintCreate(
            title="Burst pipe on Main Street",
            description="Water has been leaking for three days.",
            category_id=category.id,
        ),
    )
