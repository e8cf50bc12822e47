"""
Shared fixtures. The in-memory stores and a temporary upload directory are
used for every test; provider singletons are rebuilt per test.
"""

import asyncio
import os

os.environ["USE_MOCK_DB"] = "true"
os.environ["BLOB_BACKEND"] = "local"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from fastapi.testclient import TestClient

from app.core.settings import settings
from app.main import app
from app.models.report import ReportCreate
from app.services import report_service
from app.services.blobs import reset_blob_store
from app.services.storage import get_user_store, reset_stores
from app.utils.security import create_access_token

CHENNAI = (80.27, 13.08)


@pytest.fixture(autouse=True)
def isolated_stores(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "USE_MOCK_DB", True)
    monkeypatch.setattr(settings, "BLOB_BACKEND", "local")
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    reset_stores()
    reset_blob_store()
    yield
    reset_stores()
    reset_blob_store()


@pytest.fixture
def users():
    """A citizen, two workers, an admin and an inactive worker."""
    seed = [
        {"id": "citizen-1", "name": "Jane Doe", "email": "jane@example.org", "role": "citizen"},
        {"id": "champion-1", "name": "Green Gita", "role": "green_champion"},
        {"id": "worker-a", "name": "Ravi Kumar", "email": "ravi@example.org", "phone": "9000000001", "role": "waste_worker"},
        {"id": "worker-b", "name": "Meena Das", "email": "meena@example.org", "phone": "9000000002", "role": "waste_worker"},
        {"id": "worker-off", "name": "Old Hand", "role": "waste_worker", "is_active": False},
        {"id": "admin-1", "name": "Asha Admin", "role": "admin"},
    ]
    store = get_user_store()

    async def _insert_all():
        return [await store.insert(u) for u in seed]

    return {u["id"]: u for u in asyncio.run(_insert_all())}


@pytest.fixture
def auth():
    """auth(user) -> Authorization header for that user."""

    def _header(user):
        return {"Authorization": f"Bearer {create_access_token(user['id'], user['role'])}"}

    return _header


@pytest.fixture
def report_factory():
    """Async factory submitting a report through the service layer."""

    async def _create(reporter, longitude=CHENNAI[0], latitude=CHENNAI[1], **fields):
        payload = {
            "location": {"longitude": longitude, "latitude": latitude},
            "waste_type": "plastic",
            "estimated_quantity": "medium",
            "description": "Plastic bags dumped by the roadside",
        }
        payload.update(fields)
        return await report_service.create_report(ReportCreate(**payload), reporter)

    return _create


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
