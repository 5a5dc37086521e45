# collab_core/tests/conftest.py

import logging

import pytest
from fakeredis import aioredis
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from collab_core.config import AppConfig
from collab_core.domain.interfaces import AbstractAuthProvider
from collab_core.infrastructure import schemas
from collab_core.infrastructure.document_store import SQLDocumentStore
from collab_core.infrastructure.event_dispatcher import EventDispatcher
from collab_core.infrastructure.redis_client import RedisClient
from collab_core.main import Application

ALICE = {"id": "alice", "name": "Alice", "email": "alice@stanford.edu"}
BOB = {"id": "bob", "name": "Bob", "email": "bob@stanford.edu"}
CAROL = {"id": "carol", "name": "Carol", "email": "carol@stanford.edu"}


@pytest.fixture(scope="function")
def app_config():
    """
    Provide a test configuration with an in-memory SQLite database.
    """
    return AppConfig(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        REDIS_HOST="localhost",
        REDIS_PORT=6379,
        PROJECT_NAME="Test Collab Core",
        MESSAGE_WINDOW=100,
        MESSAGE_FETCH_LIMIT=50,
        LOCK_TIMEOUT_SECONDS=5,
        LOCK_BLOCKING_TIMEOUT_SECONDS=2,
        RECONCILE_INTERVAL_SECONDS=60,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def test_logger():
    logger = logging.getLogger("test_collab")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture(scope="function")
async def mock_redis():
    """Provide a fake Redis client for testing."""
    redis = aioredis.FakeRedis(decode_responses=True)
    yield redis
    await redis.flushall()
    await redis.aclose()


@pytest.fixture(scope="function")
async def engine(app_config):
    """Create a SQLAlchemy engine for testing with a single shared in-memory connection."""
    engine = create_async_engine(
        app_config.DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    yield engine
    await engine.dispose()


@pytest.fixture
def dispatcher(test_logger):
    return EventDispatcher(test_logger)


@pytest.fixture
async def store(engine, dispatcher, test_logger):
    store = SQLDocumentStore(engine, dispatcher, test_logger, origin="test-origin")
    await store.create_schema()
    return store


@pytest.fixture
async def redis_client(mock_redis, test_logger):
    client = RedisClient(
        host="localhost", port=6379, logger=test_logger, lock_timeout=5, lock_blocking_timeout=2
    )
    client.client = mock_redis
    return client


@pytest.fixture(scope="function")
async def application(app_config, engine, mock_redis):
    """Fully wired application on the test database and fake Redis."""
    application = Application(config=app_config, engine=engine)
    application.redis_client.client = mock_redis
    await application.start(background=False)
    yield application
    application.store.live_queries.cancel_all()


@pytest.fixture
def requests(application):
    return application.requests


@pytest.fixture
def group_chats(application):
    return application.group_chats


@pytest.fixture
def request_dms(application):
    return application.request_dms


@pytest.fixture
def projects(application):
    return application.projects


@pytest.fixture
def vr_study_request():
    return schemas.RequestCreate(
        from_user_id=ALICE["id"],
        from_user_name=ALICE["name"],
        from_user_email=ALICE["email"],
        to_user_id=BOB["id"],
        project_name="VR Study",
        project_id="post-vr-study",
        message="I know Unity.",
    )


@pytest.fixture
async def pending_request_id(requests, vr_study_request):
    result = await requests.create_request(vr_study_request)
    assert result.success, result.detail
    return result.id


class FakeAuthProvider(AbstractAuthProvider):
    def __init__(self, user_id=None):
        self.user_id = user_id
        self.listeners = []

    def current_user_id(self):
        return self.user_id

    async def current_user_profile(self):
        if self.user_id is None:
            return None
        return {"id": self.user_id}

    def add_listener(self, listener):
        self.listeners.append(listener)

        def unsubscribe():
            if listener in self.listeners:
                self.listeners.remove(listener)

        return unsubscribe

    async def sign_in(self, user_id):
        self.user_id = user_id
        for listener in list(self.listeners):
            await listener(user_id)

    async def sign_out(self):
        self.user_id = None
        for listener in list(self.listeners):
            await listener(None)


@pytest.fixture
def auth_provider():
    return FakeAuthProvider()
