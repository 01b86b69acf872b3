"""Pytest configuration: in-memory database, wired services and small factories."""

import os

from cryptography.fernet import Fernet

# Set test configuration BEFORE any imports from fundhost
# so the settings instance and the default engine pick it up
os.environ["FUNDHOST_DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("FUNDHOST_ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.pop("FUNDHOST_SENTRY_DSN", None)

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from fundhost.constants.collectives import CollectiveType  # noqa: E402
from fundhost.models import Base  # noqa: E402
from fundhost.models.types import utcnow  # noqa: E402
from fundhost.services import make_engine  # noqa: E402
from fundhost.services.container import build_services  # noqa: E402


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = make_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Create test database session."""
    SessionLocal = sessionmaker(bind=engine, autoflush=False)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def services(db_session):
    """Every service wired around the test session, without external gateways."""
    return build_services(db_session)


@pytest.fixture
def make_user(services):
    """Factory creating a user with its USER profile."""
    counter = {"n": 0}

    def _make_user(email=None, name=None):
        counter["n"] += 1
        email = email or f"user{counter['n']}@example.com"
        return services.users.create_user_with_collective(email, name).entity

    return _make_user


@pytest.fixture
def user(make_user):
    return make_user("alice@example.com", "Alice Liddell")


@pytest.fixture
def host(services):
    """An approved fiscal host."""
    return services.collectives.create(
        type=CollectiveType.ORGANIZATION,
        name="Open Source Host",
        currency="USD",
        is_host_account=True,
        is_active=True,
        approved_at=utcnow(),
    ).entity


@pytest.fixture
def make_collective(services, host):
    """Factory creating collectives hosted by ``host``."""

    def _make_collective(name="Babel", **fields):
        fields.setdefault("currency", "USD")
        fields.setdefault("host_collective_id", host.id)
        fields.setdefault("is_active", True)
        fields.setdefault("approved_at", utcnow())
        return services.collectives.create(
            type=CollectiveType.COLLECTIVE, name=name, **fields
        ).entity

    return _make_collective


@pytest.fixture
def collective(make_collective):
    return make_collective("Babel")
