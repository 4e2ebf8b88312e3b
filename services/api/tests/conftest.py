import pytest
from datetime import timedelta
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chefsync.main import app
from chefsync.db import Base, get_db
from chefsync.deps import get_failure_log, get_quota_checker
from chefsync.core.time import utc_now
from chefsync.infra.failure_log import InMemoryFailureLog
from chefsync.models import UserSession
from chefsync.routers.sync import limiter
from chefsync.services.sessions import hash_token
from chefsync.sync.quota import PlanQuotaChecker

# --- Test Database Setup ---

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool  # one shared connection for the in-memory database
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def failure_log():
    return InMemoryFailureLog()

@pytest.fixture
def client(failure_log):
    """Test client with DB and failure log overrides, rate limiting off."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_failure_log] = lambda: failure_log
    limiter.enabled = False
    with TestClient(app) as c:
        yield c
    limiter.enabled = True
    app.dependency_overrides.clear()

@pytest.fixture
def db_session():
    """Direct database session for setup."""
    session = TestingSessionLocal()
    yield session
    session.close()

def make_session(db, user_id: str, token: str, expires_in: timedelta = timedelta(days=1)):
    db.add(UserSession(user_id=user_id, token_hash=hash_token(token), expires_at=utc_now() + expires_in))
    db.commit()

@pytest.fixture
def session_factory(db_session):
    """Create extra sessions: session_factory(user_id, token, expires_in=...)."""
    def _make(user_id: str, token: str, expires_in: timedelta = timedelta(days=1)):
        make_session(db_session, user_id, token, expires_in)
        return {"Authorization": f"Bearer {token}"}
    return _make

@pytest.fixture
def user_id():
    return "user-1"

@pytest.fixture
def auth_headers(db_session, user_id):
    """Bearer headers for a live session of `user_id`."""
    make_session(db_session, user_id, "test-token")
    return {"Authorization": "Bearer test-token"}

@pytest.fixture
def other_auth_headers(db_session):
    make_session(db_session, "user-2", "other-token")
    return {"Authorization": "Bearer other-token"}

@pytest.fixture
def quota_limits(client):
    """Install plan limits for the duration of a test: quota_limits(cookware=50)."""
    def _set(**limits):
        def _checker(db=Depends(get_db)):
            return PlanQuotaChecker(db, limits=limits)
        app.dependency_overrides[get_quota_checker] = _checker
    return _set

import fakeredis
import fakeredis.aioredis
from chefsync.infra import redis_client

@pytest.fixture(autouse=True)
def mock_redis(monkeypatch):
    server = fakeredis.FakeServer()
    # Create fake clients sharing the same server
    async_redis = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
    sync_redis = fakeredis.FakeRedis(server=server, decode_responses=True)

    # Force the clients into the infra module
    redis_client._redis_async = async_redis
    redis_client._redis_sync = sync_redis

    yield sync_redis

    # Cleanup
    redis_client._redis_async = None
    redis_client._redis_sync = None
