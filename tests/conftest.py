"""
Shared fixtures: in-memory SQLite (APP_ENV=test), fresh schema per test,
services wired exactly as create_app wires them, with a mock notifier.
"""
import os

os.environ["APP_ENV"] = "test"
os.environ.pop("DATABASE_URL", None)

from unittest.mock import Mock

import pytest

from api import build_services, create_app
from api.config import TestingConfig
from models import storage
from models.user_store import UserStore
from services.notifier import Notifier

PASSWORD = "Secret123!"


def config_dict(cls=TestingConfig) -> dict:
    return {key: getattr(cls, key) for key in dir(cls) if key.isupper()}


@pytest.fixture(autouse=True)
def fresh_db():
    storage.drop_all()
    storage.reload()
    yield
    storage.close()


@pytest.fixture
def notifier():
    return Mock(spec=Notifier)


@pytest.fixture
def services(notifier):
    return build_services(config_dict(), notifier=notifier)


@pytest.fixture
def tokens(services):
    return services[0]


@pytest.fixture
def accounts(services):
    return services[1]


@pytest.fixture
def store():
    return UserStore(storage)


@pytest.fixture
def alice(tokens):
    """Registered user; returns the TokenPair from registration."""
    return tokens.register("alice@example.com", PASSWORD, "Alice", "Doe")


@pytest.fixture
def app(notifier):
    return create_app("test", notifier=notifier)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def reload_user(store):
    """Reload a user from the database, bypassing the session identity map."""
    def _reload(user_id):
        storage.close()
        return store.load_by_id(user_id)
    return _reload
