"""
Shared fixtures: mocked sessions for service tests, a SQLite-backed
application for API tests.
"""
import pytest
import pytest_asyncio
from datetime import datetime
from unittest.mock import MagicMock
from httpx import ASGITransport, AsyncClient

from trustfund.cache.redis import RedisCache
from trustfund.core.config import Settings
from trustfund.core.security import create_access_token
from trustfund.database.database import init_db
from trustfund.main import create_app
from trustfund.models import Campaign, Cause, User


# ============================================================================
# UNIT FIXTURES
# ============================================================================

@pytest.fixture
def mock_db_session():
    """Mock database session"""
    session = MagicMock()
    session.add = MagicMock()
    session.flush = MagicMock()
    session.commit = MagicMock()
    session.refresh = MagicMock()
    session.rollback = MagicMock()
    session.query = MagicMock()
    session.execute = MagicMock()
    return session


@pytest.fixture
def mock_circuit_breaker():
    """Mock circuit breaker that passes through function calls"""
    async def mock_call(func):
        return func()

    breaker = MagicMock()
    breaker.call = mock_call
    breaker.get_state = MagicMock(return_value={"state": "closed"})
    return breaker


@pytest.fixture
def disabled_cache():
    """Cache without a Redis URL; every lookup is a miss"""
    return RedisCache(redis_url="")


@pytest.fixture
def kyc_user():
    return User(id="user-kyc", name="Asha", email="asha@example.com",
                is_ngo=False, is_admin=False, kyc_verified=True)


@pytest.fixture
def ngo_user():
    return User(id="user-ngo", name="Relief Trust", email="relief@example.com",
                is_ngo=True, is_admin=False, kyc_verified=True)


@pytest.fixture
def unverified_user():
    return User(id="user-new", name="Ravi", email="ravi@example.com",
                is_ngo=False, is_admin=False, kyc_verified=False)


@pytest.fixture
def sample_campaign():
    """A permanent Community campaign awaiting verification"""
    return Campaign(
        id=5,
        title="Clean Water",
        description="Borewells for three villages",
        cause=Cause.COMMUNITY,
        location="Pune",
        goal_amount=10000,
        collected_amount=0,
        unique_code="TF-AB12CD",
        verified=False,
        is_temporary=False,
        created_by="user-kyc",
        created_at=datetime(2025, 5, 1, 10, 0, 0),
    )


@pytest.fixture
def temporary_campaign():
    """Unverified temporary Medical campaign; its funds are held"""
    return Campaign(
        id=7,
        title="Surgery for Meera",
        description="Emergency cardiac surgery",
        cause=Cause.MEDICAL,
        goal_amount=200000,
        collected_amount=0,
        unique_code="TF-MED001",
        verified=False,
        is_temporary=True,
        hospital_email="billing@cityhospital.example.com",
        created_by="user-kyc",
        created_at=datetime(2025, 5, 2, 9, 0, 0),
    )


# ============================================================================
# API FIXTURES
# ============================================================================

@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a throwaway SQLite file"""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'trustfund.db'}",
        redis_url="",
        tracing_enabled=False,
        jwt_secret="test-secret",
        db_connect_retries=1,
        db_connect_delay=0,
        log_level="WARNING",
    )


@pytest.fixture
def app(settings):
    application = create_app(settings)
    context = application.state.context
    # ASGITransport does not run startup events
    init_db(context.engine, max_retries=1, delay=0)
    yield application
    context.engine.dispose()


@pytest.fixture
def context(app):
    return app.state.context


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def seed_user(context):
    """Insert a user row directly, bypassing the first sign-in path"""
    def _seed(user_id, kyc_verified=True, is_ngo=False, is_admin=False, email=None, name=None):
        db = context.session_factory()
        try:
            db.add(User(
                id=user_id,
                name=name or user_id,
                email=email or f"{user_id}@example.com",
                kyc_verified=kyc_verified,
                is_ngo=is_ngo,
                is_admin=is_admin,
            ))
            db.commit()
        finally:
            db.close()
        return user_id
    return _seed


@pytest.fixture
def auth_headers(settings):
    """Bearer header for a token whose subject is ``user_id``"""
    def _headers(user_id, **claims):
        token = create_access_token(settings, user_id, **claims)
        return {"Authorization": f"Bearer {token}"}
    return _headers
