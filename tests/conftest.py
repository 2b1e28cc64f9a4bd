import pytest
from fastapi.testclient import TestClient

from cfp_storage.config import settings
from cfp_storage.dependencies.storage import get_storage, reset_storage
from cfp_storage.main import app
from cfp_storage.storage.local import LocalStorageBackend


@pytest.fixture
def storage_root(tmp_path):
    """Directory used as the storage root; siblings stay outside it."""
    return tmp_path / "storage"


@pytest.fixture
def storage(storage_root):
    """Filesystem backend rooted in a per-test temporary directory."""
    return LocalStorageBackend(
        base_path=str(storage_root),
        base_url="/api/v1/files",
    )


@pytest.fixture
def client(storage_root, monkeypatch):
    """
    Test client running the real app lifespan.

    Startup builds the backend from settings, so settings point at the
    per-test storage root.
    """
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "local")
    monkeypatch.setattr(settings, "STORAGE_BASE_PATH", str(storage_root))
    monkeypatch.setattr(settings, "STORAGE_BASE_URL", "/api/v1/files")
    monkeypatch.setattr(settings, "STORAGE_PUBLIC_BASE_URL", None)

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
    reset_storage()


@pytest.fixture
def override_storage():
    """Swap the backend handed to endpoints for the duration of a test."""

    def _override(backend):
        app.dependency_overrides[get_storage] = lambda: backend

    yield _override
    app.dependency_overrides.pop(get_storage, None)
