import os
from contextlib import contextmanager
from pathlib import Path

from dotenv import load_dotenv
import fakeredis
import pytest

# Load environment variables for tests
load_dotenv(Path(__file__).resolve().parents[1] / '.env.test')
os.environ.setdefault("PYTEST_RUN", "1")
os.environ.setdefault("REDIS_URL", "disabled")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from nanny_booking import models  # noqa: E402,F401
from nanny_booking.database import Base  # noqa: E402
from nanny_booking.utils import recovery_cache  # noqa: E402


class RecordingScheduler:
    """Scheduler double that records debounce requests instead of firing them."""

    def __init__(self):
        self.calls = []
        self.pending = {}
        self.cancelled = []

    def schedule(self, key, delay, callback):
        self.calls.append((key, delay))
        self.pending[key] = callback

    def cancel(self, key):
        self.cancelled.append(key)
        return self.pending.pop(key, None) is not None

    def cancel_all(self):
        count = len(self.pending)
        self.pending.clear()
        return count

    def is_pending(self, key):
        return key in self.pending

    def run_pending(self):
        callbacks = list(self.pending.values())
        self.pending.clear()
        return [cb() for cb in callbacks]


# Patch the recovery cache onto fakeredis for all tests
@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = fakeredis.FakeStrictRedis(decode_responses=True)
    monkeypatch.setattr(recovery_cache, "get_redis_client", lambda: fake)
    return fake


@pytest.fixture
def Session():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session_factory(Session):
    @contextmanager
    def factory():
        db = Session()
        try:
            yield db
        finally:
            db.close()

    return factory


@pytest.fixture
def scheduler():
    return RecordingScheduler()
