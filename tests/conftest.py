"""
conftest.py — Shared Test Fixtures for Alina Visitor Parking

Provides an in-memory SQLite database, FastAPI TestClients logged in as
each role, and factory fixtures for core models (Building, Unit, User,
Vehicle, ParkingPass).

Business Rules:
- All tests run against isolated in-memory DB (no prod data risk)
- Rate limiting is disabled and bcrypt runs at minimum cost
- Role clients log in through POST /api/auth/login, so the session
  cookie and route guard are exercised exactly as in production
- Each test function gets a fresh DB (create_all / drop_all)

Called by: all test files via pytest autodiscovery
Depends on: app.models (Base), app.database (get_db), app.main
"""

import os
os.environ["TESTING"] = "1"  # Must be set before importing app modules
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RESEND_API_KEY", "")

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import (
    Base, Building, ParkingPass, ParkingRule, ParkingZone, Resident, Unit, User, Vehicle,
)
from app.services.auth_service import hash_password

# ── In-memory SQLite engine ──────────────────────────────────────────

TEST_DB_URL = "sqlite://"  # in-memory, fresh per session

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


PASSWORD = "Password123!"


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def building(db_session: Session) -> Building:
    """A hospital building with rules, one zone, and three units."""
    b = Building(
        name="Alina Hospital",
        slug="alina-hospital",
        address="100 Main St",
        timezone="America/New_York",
    )
    db_session.add(b)
    db_session.flush()
    db_session.add(ParkingRule(
        building_id=b.id,
        max_vehicles_per_unit=2,
        max_consecutive_hours=24,
        cooldown_hours=2,
        max_extensions=1,
        extension_max_hours=4,
        allowed_durations=[2, 4, 8, 12, 24],
        grace_period_minutes=15,
    ))
    db_session.add(ParkingZone(building_id=b.id, name="Main Lot", code="MAIN"))
    for number, floor in (("101", 1), ("102", 1), ("201", 2)):
        db_session.add(Unit(building_id=b.id, unit_number=number, floor=floor, section="East"))
    db_session.commit()
    db_session.refresh(b)
    return b


@pytest.fixture()
def unit(db_session: Session, building: Building) -> Unit:
    return (
        db_session.query(Unit)
        .filter(Unit.building_id == building.id, Unit.unit_number == "101")
        .one()
    )


@pytest.fixture()
def make_user(db_session: Session):
    """Factory: make_user("SECURITY") -> User with password PASSWORD."""

    def _make(role: str, email: str | None = None, **fields) -> User:
        user = User(
            email=email or f"{role.lower()}@alinahospital.com",
            name=f"Test {role.title()}",
            role=role,
            password_hash=hash_password(PASSWORD),
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def admin_user(make_user) -> User:
    return make_user("SUPER_ADMIN", "admin@alinahospital.com")


@pytest.fixture()
def manager_user(make_user) -> User:
    return make_user("MANAGER")


@pytest.fixture()
def security_user(make_user) -> User:
    return make_user("SECURITY")


@pytest.fixture()
def resident_user(db_session: Session, make_user, unit: Unit) -> User:
    """A resident linked to unit 101."""
    user = make_user("RESIDENT", "resident@example.com")
    db_session.add(Resident(unit_id=unit.id, user_id=user.id, name=user.name, email=user.email))
    db_session.commit()
    return user


@pytest.fixture()
def vehicle(db_session: Session) -> Vehicle:
    v = Vehicle(license_plate="ABC 123", normalized_plate="ABC123", make="Toyota", model="Camry", color="Silver")
    db_session.add(v)
    db_session.commit()
    db_session.refresh(v)
    return v


@pytest.fixture()
def make_pass(db_session: Session, unit: Unit):
    """Factory: make_pass(vehicle, start=..., hours=4, status="ACTIVE")."""

    def _make(
        vehicle: Vehicle,
        start: datetime | None = None,
        hours: int = 4,
        status: str = "ACTIVE",
        target_unit: Unit | None = None,
        **fields,
    ) -> ParkingPass:
        start = start or datetime.now(timezone.utc) - timedelta(hours=1)
        end = start + timedelta(hours=hours)
        p = ParkingPass(
            vehicle_id=vehicle.id,
            unit_id=(target_unit or unit).id,
            start_time=start,
            end_time=end,
            original_end_time=end,
            duration=hours,
            status=status,
            **fields,
        )
        db_session.add(p)
        db_session.commit()
        db_session.refresh(p)
        return p

    return _make


@pytest.fixture()
def active_pass(make_pass, vehicle: Vehicle) -> ParkingPass:
    """Started an hour ago, ends in three hours."""
    return make_pass(vehicle, visitor_name="Jane Smith", visitor_email="jane@example.com")


# ── Clients ──────────────────────────────────────────────────────────


@pytest.fixture()
def app_db(db_session: Session):
    """Route get_db and background-task sessions to the test session."""
    from app.database import get_db
    from app.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    original_close = db_session.close
    db_session.close = lambda: None
    with patch("app.database.SessionLocal", return_value=db_session):
        yield app
    db_session.close = original_close
    app.dependency_overrides.clear()


def login(client: TestClient, email: str, password: str = PASSWORD):
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp


@pytest.fixture()
def client(app_db) -> TestClient:
    """Anonymous TestClient (public visitor)."""
    with TestClient(app_db) as c:
        yield c


@pytest.fixture()
def admin_client(app_db, admin_user) -> TestClient:
    with TestClient(app_db) as c:
        login(c, admin_user.email)
        yield c


@pytest.fixture()
def manager_client(app_db, manager_user) -> TestClient:
    with TestClient(app_db) as c:
        login(c, manager_user.email)
        yield c


@pytest.fixture()
def security_client(app_db, security_user) -> TestClient:
    with TestClient(app_db) as c:
        login(c, security_user.email)
        yield c


@pytest.fixture()
def resident_client(app_db, resident_user) -> TestClient:
    with TestClient(app_db) as c:
        login(c, resident_user.email)
        yield c
