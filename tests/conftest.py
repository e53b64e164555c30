"""Shared fixtures: a SQLite-backed store, an in-memory TTL cache and a wired-up app."""
import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.pool import StaticPool

from quizapi.core.config import Settings
from quizapi.core.database import init_db, make_engine, make_session_factory
from quizapi.core.security import PasswordHasher
from quizapi.factory import create_app
from quizapi.models.schemas import PermissionIn
from quizapi.services.store import SqlAlchemyStore

SEED_PERMISSIONS = [
    ("Read Quiz", "quiz", "read"),
    ("Create Quiz", "quiz", "create"),
    ("Update Quiz", "quiz", "update"),
    ("Delete Quiz", "quiz", "delete"),
    ("Submit Quiz", "quiz", "submit"),
    ("Read Permission", "permission", "read"),
    ("Create Permission", "permission", "create"),
    ("Update Permission", "permission", "update"),
    ("Delete Permission", "permission", "delete"),
    ("Read Role", "role", "read"),
    ("Create Role", "role", "create"),
    ("Update Role", "role", "update"),
    ("Delete Role", "role", "delete"),
    ("Manage User", "user", "manage"),
]


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryCache:
    """Dict-backed cache client honouring per-key expiry against a fake clock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.entries = {}

    def get(self, key):
        entry = self.entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self.clock() >= expires_at:
            del self.entries[key]
            return None
        return value

    def set_with_expiry(self, key, value, ttl_seconds):
        self.entries[key] = (value, self.clock() + ttl_seconds)

    def delete(self, key):
        self.entries.pop(key, None)

    def ttl(self, key):
        return self.entries[key][1] - self.clock()


class BrokenCache:
    def get(self, key):
        raise RedisConnectionError("Connection refused")

    def set_with_expiry(self, key, value, ttl_seconds):
        raise RedisConnectionError("Connection refused")

    def delete(self, key):
        raise RedisConnectionError("Connection refused")


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        JWT_SECRET="test-secret",
        BCRYPT_ROUNDS=4,
        DATABASE_URL="sqlite://",
        CREATE_TABLES=False,
    )


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return SqlAlchemyStore(session_factory)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return InMemoryCache(clock)


@pytest.fixture
def broken_cache():
    return BrokenCache()


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def seeded(store, hasher):
    """Permissions, the admin/moderator/user roles and one user per role."""
    permissions = [store.save_permission(PermissionIn(name=n, resource=r, action=a)) for n, r, a in SEED_PERMISSIONS]
    moderator_ids = [p.id for p in permissions
                     if p.resource == "quiz" or (p.resource in ("permission", "role") and p.action == "read")]
    user_ids = [p.id for p in permissions if p.resource == "quiz" and p.action in ("read", "submit")]
    roles = {
        "admin": store.save_role(name="admin", description="Full access", permission_ids=[p.id for p in permissions]),
        "moderator": store.save_role(name="moderator", permission_ids=moderator_ids),
        "user": store.save_role(name="user", permission_ids=user_ids),
    }
    users = {}
    for name, password in (("admin", "admin123"), ("moderator", "mod123"), ("user", "user123")):
        user = store.save_user(name, f"{name}@example.com", hasher.hash(password))
        store.add_user_role(user.id, roles[name].id)
        users[name] = user
    return {"permissions": permissions, "roles": roles, "users": users}


@pytest.fixture
def app(settings, store, cache):
    return create_app(settings, store=store, cache_client=cache)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def login(client):
    def _login(username, password):
        res = client.post("/api/v1/auth/login", json={"username": username, "password": password})
        assert res.status_code == 200, res.text
        return {"Authorization": f"Bearer {res.json()['token']}"}
    return _login


@pytest.fixture
def quiz_payload():
    return {
        "title": "Python Basics",
        "questions": [
            {"text": "Which keyword defines a function?", "answers": [
                {"text": "def", "is_correct": True},
                {"text": "func", "is_correct": False},
            ]},
            {"text": "Which type is immutable?", "answers": [
                {"text": "tuple", "is_correct": True},
                {"text": "list", "is_correct": False},
                {"text": "dict", "is_correct": False},
            ]},
        ],
    }
