import base64
import os

# Configure before the app modules read settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PAYME_MERCHANT_ID"] = "test-merchant"
os.environ["PAYME_MERCHANT_KEY"] = "test-key"
os.environ["PAYME_CHECKOUT_URL"] = "https://checkout.paycom.uz"
os.environ["PAYME_API_URL"] = "https://checkout.paycom.uz/api"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RECON_ENABLED"] = "false"

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from core.payme import PaymeService, get_payme_service
from crud.order import create_order
from crud.user import create_user
from db.session import SessionLocal, create_tables, drop_tables, get_db
from main import app
from utilities.jwt import create_access_token

START_MS = 1_700_000_000_000
ORDER_ITEMS = [
    {
        "title": "Plov",
        "price": 600,
        "count": 1,
        "code": "02001001001000000",
        "package_code": "1515",
        "vat_percent": 12,
    },
    {
        "title": "Tea",
        "price": 200,
        "count": 2,
        "code": "02002001001000000",
        "package_code": "1516",
    },
]


class FakeClock:
    """Millisecond clock the tests move by hand"""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, minutes: float = 0, ms: int = 0) -> int:
        self.now += int(minutes * 60 * 1000) + ms
        return self.now


def payme_auth_header(key: str = "test-key", login: str = "Paycom") -> dict:
    token = base64.b64encode(f"{login}:{key}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


def bearer_header(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user_id})}"}


@pytest.fixture
def db_session():
    create_tables()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        drop_tables()


@pytest.fixture
def seeded(db_session):
    """User u1 with order p1 priced at 1000"""
    create_user(db_session, "u1", name="Aziz")
    create_user(db_session, "u2", name="Dilnoza")
    create_order(db_session, "p1", price=1000, items=ORDER_ITEMS, user_id="u1")
    create_order(db_session, "p2", price=2500, items=[], user_id="u2")
    return db_session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(seeded, clock):
    return PaymeService(
        seeded,
        merchant_id="test-merchant",
        checkout_url="https://checkout.paycom.uz",
        timeout_minutes=12,
        clock=clock,
    )


@pytest.fixture
def client(seeded, clock):
    def _service_override(db: Session = Depends(get_db)) -> PaymeService:
        return PaymeService(db, clock=clock)

    app.dependency_overrides[get_payme_service] = _service_override
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
