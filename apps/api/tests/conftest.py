"""
Test configuration and fixtures.

Provides:
- A fresh in-memory SQLite schema per test (app code may commit freely)
- Organization / profile / household factories
- Session token minting for authenticated tests
- HTTPX AsyncClient factory with the session cookie and CSRF header
"""
import os
import tempfile
import uuid
from dataclasses import dataclass
from typing import Generator

# Must be set before whosehouse.core.config is imported
os.environ["TESTING"] = "1"
os.environ["ENV"] = "dev"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOCAL_STORAGE_PATH", tempfile.mkdtemp(prefix="whosehouse-media-"))

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

import whosehouse.db.models  # noqa: F401  (registers tables on Base.metadata)
from whosehouse.core.deps import COOKIE_NAME, CSRF_HEADER, CSRF_HEADER_VALUE, get_db
from whosehouse.core.security import create_session_token
from whosehouse.db.base import Base
from whosehouse.db.enums import Role
from whosehouse.db.models import Household, Organization, Profile
from whosehouse.db.session import SessionLocal, engine
from whosehouse.main import app
from whosehouse.schemas.auth import UserSession
from whosehouse.services import auth_service, household_service


TEST_PASSWORD = "Str0ng!Pass"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Session over a freshly created schema.

    The in-memory database lives on one shared connection, so dropping
    every table at teardown isolates tests even when app code commits.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def test_org(db: Session) -> Organization:
    org = Organization(
        id=uuid.uuid4(),
        name="Northshire Fostering",
        slug=f"northshire-{uuid.uuid4().hex[:8]}",
    )
    db.add(org)
    db.flush()
    return org


@pytest.fixture(scope="function")
def make_profile(db: Session, test_org: Organization):
    """Factory: make_profile(Role.SOCIAL_WORKER, "Sam Worker", org=None)."""

    def _make(role: Role, full_name: str, org: Organization | None = None) -> Profile:
        org = org or test_org
        return auth_service.create_profile(
            db,
            org_id=org.id,
            email=f"{role.value}-{uuid.uuid4().hex[:8]}@example.com",
            password=TEST_PASSWORD,
            full_name=full_name,
            role=role,
        )

    return _make


@pytest.fixture(scope="function")
def make_household(db: Session, make_profile):
    """Factory: a carer plus their household, returned as (carer, household)."""

    def _make(
        name: str,
        total_bedrooms: int = 2,
        allows_house_sharing: bool = True,
        org: Organization | None = None,
    ) -> tuple[Profile, Household]:
        carer = make_profile(Role.FOSTER_CARER, f"{name} Carer", org=org)
        household = household_service.create_household_for_carer(db, carer, name)
        household.total_bedrooms = total_bedrooms
        household.allows_house_sharing = allows_house_sharing
        db.flush()
        return carer, household

    return _make


@pytest.fixture(scope="function")
def social_worker(make_profile) -> Profile:
    return make_profile(Role.SOCIAL_WORKER, "Sam Worker")


@pytest.fixture(scope="function")
def admin(make_profile) -> Profile:
    return make_profile(Role.ADMIN, "Alex Admin")


@pytest.fixture(scope="function")
def carer_household(make_household) -> tuple[Profile, Household]:
    return make_household("Oak House", total_bedrooms=2)


@pytest.fixture(scope="function")
def carer(carer_household) -> Profile:
    return carer_household[0]


@pytest.fixture(scope="function")
def household(carer_household) -> Household:
    return carer_household[1]


def _session_for(profile: Profile) -> UserSession:
    """Identity as get_current_session would build it."""
    return UserSession(
        user_id=profile.id,
        org_id=profile.organization_id,
        role=Role(profile.role),
        email=profile.email,
        full_name=profile.full_name,
    )


@pytest.fixture(scope="function")
def session_for():
    """session_for(profile) -> UserSession for calling services directly."""
    return _session_for


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    profile: Profile
    token: str
    cookie_name: str = COOKIE_NAME


def mint_auth(profile: Profile) -> TestAuth:
    token = create_session_token(
        profile.id, profile.organization_id, profile.role, profile.token_version
    )
    return TestAuth(profile=profile, token=token)


@pytest.fixture(scope="function")
async def client_for(db: Session):
    """
    Factory for AsyncClients sharing the test session.

    client_for(profile) sends that profile's session cookie; client_for()
    is anonymous. Pass csrf=False to omit the CSRF header.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    clients: list[AsyncClient] = []

    def _make(profile: Profile | None = None, csrf: bool = True) -> AsyncClient:
        db.commit()
        cookies = {COOKIE_NAME: mint_auth(profile).token} if profile else {}
        headers = {CSRF_HEADER: CSRF_HEADER_VALUE} if csrf else {}
        client = AsyncClient(
            transport=ASGITransport(app=app),
            base_url="https://test",
            cookies=cookies,
            headers=headers,
        )
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(client_for) -> AsyncClient:
    """Anonymous client with the CSRF header."""
    return client_for()
