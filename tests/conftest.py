"""Shared pytest fixtures for app testing."""

import os

# Configure before any gatepass import reads the environment
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EMAIL_ENABLED", "false")
os.environ.setdefault("PASS_BROWSER_ENABLED", "false")
os.environ.setdefault("BACKEND_BASE_URL", "http://api.test")
os.environ.setdefault("FRONTEND_BASE_URL", "http://frontend.test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from gatepass.core.config import Settings
from gatepass.core.database import Base, get_db
from gatepass.main import app
from gatepass.models.visitor import PersonType, Visitor, VisitorStatus
from gatepass.services.container import Services, get_services
from gatepass.services.s3_service import StorageError, build_object_key

# 1x1 transparent PNG
PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


class FakeStorage:
    def __init__(self):
        self.uploads = []
        self.fail = False

    def upload_file(self, file_content, file_name, folder="", content_type=None):
        if self.fail:
            raise StorageError("bucket unavailable")
        key = build_object_key(file_name, folder)
        self.uploads.append({"key": key, "content": file_content, "content_type": content_type})
        return f"https://bucket.test/{key}"


class FakeMailer:
    def __init__(self):
        self.sent = []
        self.fail_with = None
        self.result = True

    def _record(self, kind, **kwargs):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append((kind, kwargs))
        return self.result

    def send_approval_request_to_host(self, host_email, visitor):
        return self._record("host_request", host_email=host_email, visitor_id=visitor.id,
                            token=visitor.approval_token)

    def send_approval_to_visitor(self, visitor, pdf_bytes):
        return self._record("approved", visitor_id=visitor.id, pdf_bytes=pdf_bytes)

    def send_rejection_to_visitor(self, visitor):
        return self._record("rejected", visitor_id=visitor.id)

    def kinds(self):
        return [kind for kind, _ in self.sent]


class FakePassGenerator:
    def __init__(self):
        self.generated = []
        self.fail_with = None

    def generate(self, visitor):
        if self.fail_with is not None:
            raise self.fail_with
        self.generated.append(visitor.id)
        return b"%PDF-1.4 fake pass"


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    TestingSession = sessionmaker(bind=db_engine, autocommit=False, autoflush=False, expire_on_commit=False)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def services(settings):
    return Services(
        settings=settings,
        storage=FakeStorage(),
        mailer=FakeMailer(),
        pass_generator=FakePassGenerator(),
    )


@pytest.fixture
def client(db_session, services):
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def registration_payload():
    return {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "mobile": "9876543210",
        "aadhar": "123456789012",
        "purpose": "Vendor meeting",
        "toMeet": "Ravi Kumar",
        "personType": "Guest",
        "companyName": "Acme Corp",
        "gateNumber": 1,
        "laptop": "Yes",
        "vehicleNumber": "MH12AB1234",
        "hostEmail": "ravi@example.com",
        "hostPhone": "9123456780",
        "photo": f"data:image/png;base64,{PNG_BASE64}",
    }


@pytest.fixture
def make_visitor(db_session):
    """Insert a visitor row directly."""
    counter = {"n": 0}

    def _make(status=VisitorStatus.PENDING, created_at=None, **overrides):
        counter["n"] += 1
        n = counter["n"]
        created_at = created_at or datetime(2026, 1, 10, 9, 0, 0)
        fields = dict(
            visitor_code=f"NK-2026-{1000 + n}",
            name=f"Visitor {n}",
            email=f"visitor{n}@example.com",
            mobile="9876543210",
            aadhar="123456789012",
            purpose="Delivery",
            to_meet="Host",
            person_type=PersonType.VENDOR,
            company_name="Acme Corp",
            gate_number=2,
            laptop="No",
            vehicle_number="",
            host_email="host@example.com",
            photo_url="https://bucket.test/visitor-photos/photo.png",
            status=status,
            approval_token=f"{n:032x}",
            token_expires_at=datetime(2030, 1, 1),
            created_at=created_at,
            updated_at=created_at,
        )
        fields.update(overrides)
        visitor = Visitor(**fields)
        db_session.add(visitor)
        db_session.commit()
        db_session.refresh(visitor)
        return visitor

    return _make


@pytest.fixture
def admin_headers(client):
    resp = client.post("/api/admin/login", json={"username": "admin", "password": "1234"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['token']['access_token']}"}


