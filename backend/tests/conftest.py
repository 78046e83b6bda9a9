"""
Shared test fixtures and configuration.
"""

import os

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOCAL_STORAGE_PATH", "/tmp/eldersync_test_data")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("AUTH_BACKEND", "local")

from fastapi.testclient import TestClient  # noqa: E402

from eldersync.config import Settings  # noqa: E402
from eldersync.main import create_app  # noqa: E402
from eldersync.storage import LocalKeyValueStore  # noqa: E402


@pytest.fixture
def store(tmp_path):
    """Empty key-value store in a temporary directory."""
    return LocalKeyValueStore(str(tmp_path / "data"))


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        local_storage_path=str(tmp_path / "data"),
        storage_backend="local",
        auth_backend="local",
        secret_key="test-secret-key-for-testing",
        timezone="UTC",
        log_file_enabled=False,
        log_console_enabled=False,
        log_api_requests=True,
    )


@pytest.fixture
def client(test_settings):
    """Test client with the lifespan (and so the app context) running."""
    with TestClient(create_app(test_settings)) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(client):
    """Sign up a caregiver and return its bearer header."""
    response = client.post(
        "/auth/signup",
        json={"email": "carer@example.com", "password": "secret123", "name": "Carer"},
    )
    assert response.status_code == 201
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}
