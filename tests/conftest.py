from datetime import datetime, timedelta

import pytest

from app import create_app
from config import Config
from models import db
from models.offering import Offering, KIND_CLASS, KIND_SESSION
from models.reservation import Reservation, STATUS_PENDING
from models.user import User
from services.reservations import book_offering
from utils.clock import Clock
from utils.roles import ADMIN, MENTOR, MENTEE
from utils.seed import get_role

NOW = datetime(2026, 3, 1, 9, 0, 0)
TTL = timedelta(hours=24)


class FrozenClock(Clock):
    def __init__(self, now):
        self.current = now

    def now(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def app(tmp_path, clock):
    class TestConfig(Config):
        TESTING = True
        SQLALCHEMY_DATABASE_URI = "sqlite:///" + str(tmp_path / "test.db")
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30}}
        CREATE_TABLES = True
        SCHEDULER_ENABLED = False
        LOG_LEVEL = "WARNING"
        BOOKING_TTL_SECONDS = int(TTL.total_seconds())

    app = create_app(TestConfig, clock=clock)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(ctx):
    def _make(email, *roles):
        user = User(email=email, name=email.split("@")[0])
        user.roles = [get_role(r) for r in roles]
        db.session.add(user)
        db.session.commit()
        return user.id
    return _make


@pytest.fixture
def mentor_id(make_user):
    return make_user("mentor@example.com", MENTOR)


@pytest.fixture
def admin_id(make_user):
    return make_user("admin@example.com", ADMIN)


@pytest.fixture
def make_offering(ctx, mentor_id):
    def _make(
        capacity=1,
        kind=KIND_CLASS,
        start=NOW + timedelta(days=1),
        end=NOW + timedelta(days=30),
        verified=True,
        available=True,
        price=100000,
    ):
        offering = Offering(
            kind=kind,
            mentor_id=mentor_id,
            title=f"{kind.title()} offering",
            price=price,
            max_participants=capacity,
            start_date=start,
            end_date=end,
            is_verified=verified,
            is_available=available,
        )
        db.session.add(offering)
        db.session.commit()
        return offering.id
    return _make


@pytest.fixture
def add_reservation(ctx):
    def _add(offering_id, user_id, status=STATUS_PENDING, code=100, expires_at=NOW + TTL):
        row = Reservation(
            offering_id=offering_id,
            user_id=user_id,
            unique_code=code,
            amount_due=code,
            payment_status=status,
            created_at=NOW,
            expires_at=expires_at,
        )
        db.session.add(row)
        db.session.commit()
        return row.id
    return _add


@pytest.fixture
def book(ctx, clock):
    def _book(offering_id, user_id, kind=None):
        return book_offering(db.session, offering_id, user_id, clock, TTL, kind=kind)
    return _book


@pytest.fixture
def login(client):
    def _login(email):
        resp = client.post("/auth/login", json={"email": email, "name": email.split("@")[0]})
        assert resp.status_code == 200
        return {"Authorization": f"Bearer {resp.get_json()['token']}"}
    return _login


@pytest.fixture
def mentee_ids(make_user):
    return [make_user(f"mentee{i}@example.com", MENTEE) for i in range(6)]


@pytest.fixture
def fresh(ctx):
    """Reload a row, bypassing whatever this session cached earlier."""
    def _fresh(model, pk):
        return db.session.get(model, pk, populate_existing=True)
    return _fresh
