import pytest

from flock.core import db
from flock.core.store import MemoryStore
from flock.models.models import User
from flock.services import profile_service
from flock.utils import timeutils


class FakeClock:
    """Strictly increasing millisecond clock so every write gets its own timestamp."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture(autouse=True)
def store():
    memory = MemoryStore()
    db.set_store(memory)
    yield memory
    db.set_store(None)


@pytest.fixture(autouse=True)
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr(timeutils, "now_ms", fake)
    return fake


@pytest.fixture
def make_user(store):
    """Create a user row plus profile and return the user id."""

    async def _make_user(username: str, display_name: str | None = None):
        user = User(
            email=f"{username}@mail.com",
            password_hash="not-a-real-hash",
            created_at=timeutils.now_ms(),
        )
        await store.insert("users", user.model_dump())
        await profile_service.create_or_update_profile(user.id, username, display_name or username.title())
        return user.id

    return _make_user
