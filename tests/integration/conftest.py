"""
Integration test conftest -- FastAPI TestClient bound to the per-test database.
"""
import pytest
from starlette.testclient import TestClient

from sitebooks.auth.security import create_access_token
from sitebooks.db import get_db
from sitebooks.storage.factory import get_storage
from sitebooks.storage.local_provider import LocalStorageProvider


@pytest.fixture
def app(session_factory, tmp_path):
    from sitebooks.main import app as fastapi_app

    def _get_db():
        session = session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    fastapi_app.dependency_overrides[get_db] = _get_db
    fastapi_app.dependency_overrides[get_storage] = lambda: LocalStorageProvider(str(tmp_path / "storage"))
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def auth_headers():
    def _headers(user) -> dict:
        return {"Authorization": f"Bearer {create_access_token(str(user.id), user.role)}"}

    return _headers
