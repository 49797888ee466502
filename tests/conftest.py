import io
import os
import pathlib
import sys
import tempfile
import uuid

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Ensure project root on sys.path for application imports
PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Environment needed before importing application modules
_fd, _db_path = tempfile.mkstemp(prefix="test_db_", suffix=".sqlite")
os.close(_fd)
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_db_path}")
os.environ.setdefault("JWT_SECRET_KEY", "testsecret")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "30")
os.environ.setdefault("JWT_REFRESH_TOKEN_EXPIRE_MINUTES", "1440")
os.environ.setdefault("ADMIN_EMAILS", "admin@example.com")
os.environ.setdefault("ENVIRONMENT", "test")

from core.exceptions import StorageError  # noqa: E402
from core.storage import ObjectStorage  # noqa: E402

ADMIN_EMAIL = "admin@example.com"
PASSWORD = "password123"


class InMemoryStorage(ObjectStorage):
    """Object store double keeping blobs in a dict."""

    def __init__(self):
        super().__init__(client=None, bucket="medical-photos", public_url="http://storage.test")
        self.blobs = {}
        self.rejected_payloads = set()
        self.fail_removals = False
        self.bucket_ready = False

    def ensure_bucket(self) -> bool:
        created = not self.bucket_ready
        self.bucket_ready = True
        return created

    def upload(self, path, data, content_type):
        if data in self.rejected_payloads:
            raise StorageError(f"Upload failed for {path}: rejected")
        self.blobs[path] = (data, content_type)

    def remove(self, paths):
        if self.fail_removals:
            raise StorageError("Failed to delete file from storage: unavailable")
        for path in paths:
            self.blobs.pop(path, None)

    def create_signed_url(self, path, ttl_seconds=3600):
        if path not in self.blobs:
            raise StorageError(f"Failed to sign URL for {path}: Object not found")
        return f"{self.public_url}/{self.bucket}/{path}?signature=test&expires={ttl_seconds}"


@pytest.fixture(scope="session")
def engine():
    from database.database import Base, enable_sqlite_foreign_keys  # local after env set

    engine_ = create_engine(
        os.environ["DATABASE_URL"], connect_args={"check_same_thread": False}
    )
    enable_sqlite_foreign_keys(engine_)
    import main  # noqa: F401  registers every model on Base

    Base.metadata.create_all(bind=engine_)
    yield engine_


@pytest.fixture(scope="function")
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def app(engine):
    from main import app as fastapi_app

    return fastapi_app


@pytest.fixture()
def storage():
    return InMemoryStorage()


@pytest.fixture(autouse=True)
def _override_dependency(app, db_session, storage):
    from core.storage import get_storage
    from database.database import get_db

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: storage
    yield
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_storage, None)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


#########################
# Helper functions
#########################


def uniq(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def make_image(color=(255, 0, 0), fmt="PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color).save(buffer, format=fmt)
    return buffer.getvalue()


def register(client, *, email: str, password: str = PASSWORD, full_name="Test Doctor"):
    r = client.post(
        "/api/v1/auth/register",
        json={"email": email, "password": password, "full_name": full_name},
    )
    # 201 success, 400 duplicate
    assert r.status_code in (201, 400), r.text
    return r


def login(client, email: str, password: str = PASSWORD):
    resp = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()


def bearer(tokens) -> dict:
    return {"Authorization": f"Bearer {tokens['access_token']}"}


def admin_headers(client) -> dict:
    register(client, email=ADMIN_EMAIL, full_name="Admin")
    return bearer(login(client, ADMIN_EMAIL))


def set_role(client, user_id: str, role: str):
    r = client.post(
        "/api/admin/update-user-role",
        json={"userId": user_id, "role": role},
        headers=admin_headers(client),
    )
    assert r.status_code == 200, r.text
    return r


def doctor_headers(client, *, full_name="Dr. Test") -> dict:
    email = f"{uuid.uuid4().hex[:8]}@example.com"
    user = register(client, email=email, full_name=full_name).json()["user"]
    set_role(client, user["id"], "doctor")
    return bearer(login(client, email))


def create_patient(client, headers, **overrides):
    payload = {
        "full_name": "John Doe",
        "age": 30,
        "file_number": uniq("F"),
        "gender": "male",
        "additional_notes": "None",
    }
    payload.update(overrides)
    return client.post("/api/v1/patients/", json=payload, headers=headers)


def upload(client, headers, patient_id, images, **form):
    files = [
        ("files", (name, data, content_type)) for name, data, content_type in images
    ]
    return client.post(
        f"/api/v1/patients/{patient_id}/photos",
        files=files,
        data=form,
        headers=headers,
    )
