"""Test configuration and shared fixtures for relay service tests.

Redis is replaced by an in-memory double with a manual clock so expiry can
be checked without sleeping; Oracle is replaced by a scripted pool whose
cursor hands back queued results in order.
"""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from relay_service.config import RelaySettings
from relay_service.db.redis import RedisBackend
from relay_service.errors import LimitReachedError, NotFoundError
from relay_service.models.accounts import Account
from relay_service.services import AuthService, MailboxService, SessionService, ValueService


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_settings(**overrides) -> RelaySettings:
    defaults = {
        "redis_host": "localhost",
        "redis_port": 6379,
        "oracle_user": "test",
        "oracle_password": "test",
        "oracle_pool_min": 1,
        "oracle_pool_max": 2,
        "relay_config_file": "does-not-exist.json",
        "auto_init": False,
    }
    defaults.update(overrides)
    return RelaySettings(**defaults)


def make_account(**overrides) -> Account:
    now = datetime.now(timezone.utc)
    defaults = {
        "id": 7,
        "api_key": "key-alice",
        "created_at": now - timedelta(days=10),
        "expired_at": now + timedelta(days=30),
        "no_of_vaults": 2,
        "is_paid": True,
    }
    defaults.update(overrides)
    return Account(**defaults)


# ---------------------------------------------------------------------------
# Redis double
# ---------------------------------------------------------------------------

class FakeRedis:
    """Lists, strings and expiry with the redis.asyncio call signatures."""

    def __init__(self):
        self.now = 0.0
        self.fail = None
        self.calls = []
        self._data = {}
        self._expiry = {}

    def advance(self, seconds: float):
        self.now += seconds

    def ttl(self, key: str):
        self._purge(key)
        exp = self._expiry.get(key)
        return None if exp is None else exp - self.now

    def exists(self, key: str) -> bool:
        self._purge(key)
        return key in self._data

    def _purge(self, key):
        exp = self._expiry.get(key)
        if exp is not None and exp <= self.now:
            self._data.pop(key, None)
            self._expiry.pop(key, None)

    def _enter(self, name, key=None):
        self.calls.append(name)
        if self.fail is not None:
            raise self.fail
        if key is not None:
            self._purge(key)

    async def ping(self):
        self._enter("ping")
        return True

    async def rpush(self, key, *values):
        self._enter("rpush", key)
        items = self._data.setdefault(key, [])
        items.extend(values)
        return len(items)

    async def lrange(self, key, start, end):
        self._enter("lrange", key)
        items = self._data.get(key, [])
        return list(items[start:] if end == -1 else items[start:end + 1])

    async def lrem(self, key, count, value):
        self._enter("lrem", key)
        items = self._data.get(key, [])
        removed = 0
        while value in items and removed < count:
            items.remove(value)
            removed += 1
        if key in self._data and not items:
            self._data.pop(key)
            self._expiry.pop(key, None)
        return removed

    async def expire(self, key, seconds):
        self._enter("expire", key)
        if key not in self._data:
            return False
        self._expiry[key] = self.now + seconds
        return True

    async def delete(self, *keys):
        self._enter("delete")
        deleted = 0
        for key in keys:
            self._purge(key)
            if self._data.pop(key, None) is not None:
                deleted += 1
            self._expiry.pop(key, None)
        return deleted

    async def set(self, key, value, ex=None):
        self._enter("set", key)
        self._data[key] = value
        self._expiry.pop(key, None)
        if ex is not None:
            self._expiry[key] = self.now + ex
        return True

    async def get(self, key):
        self._enter("get", key)
        return self._data.get(key)

    async def aclose(self):
        pass


# ---------------------------------------------------------------------------
# Oracle pool double
# ---------------------------------------------------------------------------

class MockCursor:
    def __init__(self, conn):
        self._conn = conn
        self._rows = []
        self.rowcount = 0

    async def execute(self, sql, params=None):
        self._conn.executed.append((" ".join(sql.split()), params or {}))
        result = self._conn.results.pop(0) if self._conn.results else []
        if isinstance(result, Exception):
            raise result
        if isinstance(result, int):
            self._rows = []
            self.rowcount = result
        else:
            self._rows = result
            self.rowcount = len(result)

    async def fetchall(self):
        return self._rows

    async def fetchone(self):
        return self._rows[0] if self._rows else None


class MockConnection:
    def __init__(self):
        self.results = []
        self.executed = []
        self.commits = 0

    def cursor(self):
        return MockCursor(self)

    async def commit(self):
        self.commits += 1

    async def ping(self):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


class MockPool:
    def __init__(self):
        self.min = 1
        self.max = 2
        self.busy = 0
        self.opened = 1
        self.conn = MockConnection()

    def acquire(self):
        return self.conn

    async def close(self):
        pass


# ---------------------------------------------------------------------------
# System-of-record double for the auth layer
# ---------------------------------------------------------------------------

class FakeAccountStore:
    def __init__(self):
        self.accounts = {}
        self.vaults = {}
        self.payments = []
        self.lookups = 0
        self.key_lookups = 0

    def add(self, account: Account, keys=()):
        self.accounts[account.api_key] = account
        self.vaults[account.id] = list(keys)

    async def lookup_account(self, api_key):
        self.lookups += 1
        return self.accounts.get(api_key)

    async def create_account(self, api_key):
        self.accounts[api_key] = Account(
            id=len(self.accounts) + 1, api_key=api_key, created_at=datetime.now(timezone.utc)
        )
        return api_key

    async def update_entitlement(self, api_key, expired_at, no_of_vaults, is_paid, payment_ref, amount):
        account = self.accounts.get(api_key)
        if account is None:
            raise NotFoundError("account not found")
        self.accounts[api_key] = account.model_copy(update={
            "expired_at": expired_at,
            "no_of_vaults": no_of_vaults,
            "is_paid": is_paid,
        })
        self.payments.append((api_key, payment_ref, amount))

    async def list_authorized_keys(self, account_id):
        self.key_lookups += 1
        pairs = self.vaults.get(account_id, [])
        return [k for pair in pairs for k in pair]

    async def count_keys(self, account_id):
        return len(self.vaults.get(account_id, []))

    async def register_key(self, account_id, ecdsa_key, eddsa_key, max_allowed):
        pairs = self.vaults.setdefault(account_id, [])
        if (ecdsa_key, eddsa_key) in pairs:
            return False
        if len(pairs) >= max_allowed:
            raise LimitReachedError("vault limit reached")
        pairs.append((ecdsa_key, eddsa_key))
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    return _make_settings()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def backend(fake_redis):
    return RedisBackend(fake_redis, timeout=1.0)


@pytest.fixture
def mock_pool():
    return MockPool()


@pytest.fixture
def session_service(backend):
    return SessionService(backend, ttl=300)


@pytest.fixture
def mailbox_service(backend):
    return MailboxService(backend, ttl=300)


@pytest.fixture
def value_service(backend):
    return ValueService(backend, ttl=3600)


@pytest.fixture
def account_store():
    store = FakeAccountStore()
    store.add(make_account(), keys=[("ecdsa-1", "eddsa-1")])
    return store


@pytest.fixture
def auth_service(backend, account_store):
    return AuthService(backend, account_store, account_ttl=300, keys_ttl=300)


def _install(app, settings, backend=None, pool=None, auth_service=None):
    app.state.settings = settings
    app.state.backend = backend
    app.state.pool = pool
    app.state.session_service = SessionService(backend, ttl=300) if backend else None
    app.state.mailbox_service = MailboxService(backend, ttl=300) if backend else None
    app.state.value_service = ValueService(backend, ttl=3600) if backend else None
    app.state.auth_service = auth_service


@pytest_asyncio.fixture
async def app_no_backend():
    """FastAPI app with neither Redis nor Oracle. Services unavailable (503)."""
    from relay_service.main import app

    _install(app, _make_settings())
    yield app


@pytest_asyncio.fixture
async def app_with_services(backend, mock_pool, auth_service):
    """FastAPI app wired to the Redis double and the in-memory account store."""
    from relay_service.main import app

    _install(app, _make_settings(), backend=backend, pool=mock_pool, auth_service=auth_service)
    yield app


@pytest_asyncio.fixture
async def client_no_backend(app_no_backend):
    transport = ASGITransport(app=app_no_backend)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def client(app_with_services):
    transport = ASGITransport(app=app_with_services)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
