"""HTTP fixtures: an app bound to the test database and frozen clock."""

from typing import Dict

from fastapi.testclient import TestClient
import pytest

from agenda.main import create_app
from agenda.services.api_key_service import ApiKeyService, IssuedApiKey


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def app(session_factory, clock):
    return create_app(session_factory=session_factory, clock=clock)


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture
def issue_key(db, clock):
    def _issue(permissions, **kwargs) -> IssuedApiKey:
        return ApiKeyService(db, clock=clock).issue("Integração", permissions, **kwargs)

    return _issue


@pytest.fixture
def store_key(issue_key, store) -> IssuedApiKey:
    """Full appointment access plus catalog reads, bound to the default store."""
    return issue_key({"appointments": True, "services": ["read"]}, store_id=store.id)


@pytest.fixture
def auth(store_key) -> Dict[str, str]:
    return bearer(store_key.token)
