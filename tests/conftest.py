import bcrypt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from stackenv.config import Settings
from stackenv.main import create_app
from stackenv.services.store import SqliteVariableStore


def make_settings(tmp_path, **kwargs) -> Settings:
    """Create a Settings instance that ignores the real .env file."""
    kwargs.setdefault("data_dir", tmp_path / "data")
    kwargs.setdefault("stacks_dir", tmp_path / "stacks")
    return Settings(_env_file="/dev/null", **kwargs)


class DenyAllAuthorizer:
    def __init__(self):
        self.calls = []

    def can(self, username, resource, action, scope_id=None) -> bool:
        self.calls.append((username, resource, action, scope_id))
        return False


@pytest.fixture
def stacks_dir(tmp_path):
    path = tmp_path / "stacks"
    path.mkdir()
    return path


@pytest.fixture
def stack_dir(stacks_dir):
    path = stacks_dir / "web"
    path.mkdir()
    return path


@pytest.fixture
def store(tmp_path):
    s = SqliteVariableStore(tmp_path / "data" / "stackenv.db")
    yield s
    s.close()


async def _client(app):
    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://test")


@pytest_asyncio.fixture
async def client(tmp_path, stacks_dir, store):
    app = create_app(make_settings(tmp_path), store=store)
    async with await _client(app) as c:
        yield c


@pytest_asyncio.fixture
async def client_denied(tmp_path, stacks_dir, store):
    app = create_app(make_settings(tmp_path), store=store, authorizer=DenyAllAuthorizer())
    async with await _client(app) as c:
        yield c


@pytest_asyncio.fixture
async def client_with_auth(tmp_path, stacks_dir, store):
    hashed = bcrypt.hashpw(b"secret123", bcrypt.gensalt()).decode()
    settings = make_settings(
        tmp_path, auth_enabled=True, auth_username="admin", auth_password=hashed
    )
    app = create_app(settings, store=store)
    async with await _client(app) as c:
        yield c
