"""
Pytest configuration and fixtures for photofolio tests.
"""

import io
from collections.abc import Generator
from unittest.mock import MagicMock

import pytest
from PIL import Image

from photofolio.backend import Backend
from photofolio.config import get_config
from photofolio.logging_config import configure_structured_logging
from photofolio.models.database import IN_MEMORY, create_database
from photofolio.services.cascade import CascadeDeleter
from photofolio.services.documents import DocumentStore
from photofolio.services.gallery import GalleryRepository
from photofolio.services.session import SessionManager
from photofolio.services.storage import StorageService
from photofolio.services.users import UserDirectory


@pytest.fixture(scope="session", autouse=True)
def structured_logging() -> None:
    """Route structlog through stdlib logging so log lines never land on stdout."""
    configure_structured_logging()


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Set up test environment variables and start every test with a cold config cache."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("PHOTOFOLIO_DB_PATH", IN_MEMORY)
    monkeypatch.setenv("DELETE_MAX_WORKERS", "4")
    for key in ("GCS_PHOTOS_BUCKET", "GOOGLE_CLOUD_PROJECT", "OPENAI_API_KEY", "PROTECTED_USER", "MAX_FILE_SIZE"):
        monkeypatch.delenv(key, raising=False)

    get_config().clear_cache()
    yield
    get_config().clear_cache()


@pytest.fixture
def store() -> Generator[DocumentStore, None, None]:
    """In-memory DuckDB document store with the full schema."""
    document_store = DocumentStore(create_database(IN_MEMORY))
    yield document_store
    document_store.close()


@pytest.fixture
def mock_storage() -> MagicMock:
    """Object storage stand-in; every call succeeds unless a test says otherwise."""
    storage = MagicMock(spec=StorageService)
    storage.delete_many.return_value = []
    return storage


@pytest.fixture
def backend(store: DocumentStore, mock_storage: MagicMock) -> Backend:
    return Backend(documents=store, storage=mock_storage)


@pytest.fixture
def directory(store: DocumentStore) -> UserDirectory:
    return UserDirectory(store, rounds=4)


@pytest.fixture
def session_state() -> dict:
    return {}


@pytest.fixture
def sessions(session_state: dict) -> SessionManager:
    return SessionManager(state=session_state)


@pytest.fixture
def gallery(backend: Backend) -> GalleryRepository:
    return GalleryRepository(backend)


@pytest.fixture
def deleter(backend: Backend, sessions: SessionManager) -> CascadeDeleter:
    return CascadeDeleter(backend, sessions=sessions, max_workers=4)


def make_image_bytes(image_format: str = "PNG", size: tuple[int, int] = (64, 48), color: str = "red") -> bytes:
    """Render a solid-colour image in the requested format."""
    buffer = io.BytesIO()
    mode = "RGBA" if image_format == "PNG" else "RGB"
    Image.new(mode, size, color).save(buffer, format=image_format)
    return buffer.getvalue()


@pytest.fixture
def sample_image_data() -> bytes:
    """Small PNG image."""
    return make_image_bytes()


@pytest.fixture
def sample_jpeg_data() -> bytes:
    """Larger JPEG image."""
    return make_image_bytes("JPEG", size=(2000, 1000), color="blue")


@pytest.fixture
def image_factory():
    """Build image bytes on demand: ``image_factory("GIF", (10, 10))``."""
    return make_image_bytes
