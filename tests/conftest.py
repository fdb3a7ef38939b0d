import os
from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")

from tunibus.auth.utils import create_access_token, get_password_hash  # noqa: E402
from tunibus.database import Base, get_db, utcnow  # noqa: E402
from tunibus.main import app  # noqa: E402
from tunibus.models import Trip, User, Vehicle  # noqa: E402
from tunibus.roles import ADMIN, CLIENT, DRIVER  # noqa: E402

PASSWORD = "Secret123!"


@pytest.fixture()
def engine():
    """
    Fresh in-memory SQLite database per test; StaticPool keeps the
    single connection alive across sessions.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db):
    counter = {"n": 0}

    def _make(role: str = CLIENT, email: str = None, **fields) -> User:
        counter["n"] += 1
        user = User(
            email=email or f"{role.lower()}{counter['n']}@tunibus.tn",
            password=get_password_hash(PASSWORD),
            first_name=fields.pop("first_name", role.title()),
            last_name=fields.pop("last_name", str(counter["n"])),
            role=role,
            status=fields.pop("status", "active"),
            payment_methods=[],
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": user.id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin(make_user):
    return make_user(ADMIN)


@pytest.fixture()
def driver(make_user):
    return make_user(DRIVER)


@pytest.fixture()
def client_user(make_user):
    return make_user(CLIENT)


@pytest.fixture()
def vehicle(db):
    vehicle = Vehicle(plate_number="123 TUN 4567", make="Iveco", model="Daily", capacity=20, status="available")
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    return vehicle


@pytest.fixture()
def make_trip(db):
    def _make(origin="Tunis", destination="Sousse", hours_ahead=24, price="12.50", seats=10, **fields) -> Trip:
        departure = fields.pop("departure_at", utcnow() + timedelta(hours=hours_ahead))
        trip = Trip(
            origin=origin,
            destination=destination,
            departure_at=departure,
            arrival_at=fields.pop("arrival_at", departure + timedelta(hours=2)),
            price=Decimal(price),
            seats_available=seats,
            status=fields.pop("status", "scheduled"),
            category=fields.pop("category", "other"),
            **fields,
        )
        db.add(trip)
        db.commit()
        db.refresh(trip)
        return trip

    return _make
