"""
Pytest fixtures: in-memory SQLite, per-role authenticated clients, in-memory object storage.
"""
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("RATE_LIMIT", "100000/minute")
os.environ.setdefault("STORAGE_PROVIDER", "memory")
os.environ.setdefault("JWT_SECRET", "test-secret")

import base64
import uuid
from datetime import date, datetime, timezone
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vehiclee.db import Base, get_db
from vehiclee.main import app
from vehiclee.auth.security import create_access_token, hash_secret
from vehiclee.models.models import (
    User,
    ClientProfile,
    DriverProfile,
    Vehicle,
    Device,
    Campaign,
)
from vehiclee.storage.factory import get_storage
from vehiclee.storage.provider import StorageProvider


PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
PNG_B64 = base64.b64encode(PNG_BYTES).decode()


class InMemoryStorage(StorageProvider):
    def __init__(self):
        self.objects: Dict[str, tuple] = {}

    def put(self, key: str, data: bytes, content_type: str) -> str:
        self.objects[key] = (data, content_type)
        return f"memory://{key}"

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    SessionLocal = sessionmaker(bind=db_engine, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def client(db_session, storage):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ---------- Factories ----------
@pytest.fixture
def make_user(db_session):
    def _make(role: str, name: Optional[str] = None) -> User:
        user = User(
            open_id=f"{role}-{uuid.uuid4().hex[:12]}",
            name=name or f"Test {role}",
            email=f"{role}@test.local",
            login_method="test",
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id), user.role)}"}


@pytest.fixture
def admin_user(make_user):
    return make_user("admin")


@pytest.fixture
def client_user(make_user):
    return make_user("client")


@pytest.fixture
def driver_user(make_user):
    return make_user("driver")


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture
def client_headers(client_user):
    return auth_headers(client_user)


@pytest.fixture
def driver_headers(driver_user):
    return auth_headers(driver_user)


@pytest.fixture
def client_profile(db_session, client_user):
    profile = ClientProfile(
        user_id=client_user.id,
        company_name="Test Company",
        company_country="LV",
        kyc_status="approved",
        wallet_balance=100000,
    )
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture
def driver_profile(db_session, driver_user):
    profile = DriverProfile(user_id=driver_user.id, license_number="LV-123456", document_status="approved")
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture
def make_campaign(db_session):
    def _make(profile: ClientProfile, status: str = "draft", name: str = "Campaign") -> Campaign:
        campaign = Campaign(
            client_id=profile.id,
            campaign_name=name,
            city="Riga",
            start_date=date(2025, 1, 1),
            end_date=date(2025, 1, 31),
            number_of_cars=5,
            daily_budget=1000,
            total_budget=31000,
            status=status,
        )
        db_session.add(campaign)
        db_session.commit()
        return campaign

    return _make


@pytest.fixture
def make_device(db_session):
    counter = {"n": 0}

    def _make(driver: DriverProfile, secret: str = "device-secret") -> Device:
        counter["n"] += 1
        vehicle = Vehicle(
            driver_id=driver.id,
            license_plate=f"AB-{counter['n']:04d}-{uuid.uuid4().hex[:4]}",
            make="Toyota",
            model="Prius",
            approval_status="approved",
        )
        db_session.add(vehicle)
        db_session.flush()
        device = Device(
            vehicle_id=vehicle.id,
            device_id=f"EPD-{uuid.uuid4().hex[:10]}",
            device_secret=hash_secret(secret),
            status="active",
        )
        db_session.add(device)
        db_session.commit()
        return device

    return _make


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
