import os

# Use in-memory sqlite for tests; must be set before pawwalk.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from pawwalk.db import Base, make_engine  # noqa: E402
from pawwalk.models.user_statistics import UserStatistics  # noqa: E402,F401
from pawwalk.models.walk_participant import WalkParticipant  # noqa: E402,F401
from pawwalk.models.walk_schedule import WalkSchedule  # noqa: E402,F401
from pawwalk.models.walk_session import WalkSession  # noqa: E402,F401

TOKENS = {
    "token-alice": "alice",
    "token-bob": "bob",
    "token-carol": "carol",
    "token-dave": "dave",
}


def auth(user: str) -> dict:
    return {"Authorization": f"Bearer token-{user}"}


@pytest.fixture()
def session_factory():
    engine = make_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def file_session_factory(tmp_path):
    """Separate connections per session, for tests that race two writers."""
    engine = make_engine(f"sqlite+pysqlite:///{tmp_path / 'walks.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def broadcaster():
    from pawwalk.services.broadcaster import ScheduleBroadcaster

    return ScheduleBroadcaster(queue_size=10)


@pytest.fixture()
def client(broadcaster):
    # Import after env is set so engine is created with sqlite
    from fastapi.testclient import TestClient

    from pawwalk import db as db_module
    from pawwalk.api.deps import StaticTokenResolver, get_identity_resolver
    from pawwalk.main import app
    from pawwalk.services.broadcaster import get_broadcaster

    Base.metadata.drop_all(bind=db_module.engine)
    Base.metadata.create_all(bind=db_module.engine)
    app.dependency_overrides[get_identity_resolver] = lambda: StaticTokenResolver(TOKENS)
    app.dependency_overrides[get_broadcaster] = lambda: broadcaster
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
