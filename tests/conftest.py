import pytest

from app import create_app
from models import db
from services.booking_service import BookingService

from fakes import Clock, FakeStationDirectory, FakeUserDirectory


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "RECONCILER_ENABLED": False,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def users():
    return FakeUserDirectory()


@pytest.fixture
def stations():
    return FakeStationDirectory()


@pytest.fixture
def service(app, users, stations, clock):
    svc = BookingService(users, stations, clock=clock)
    app.extensions["booking_service"] = svc
    return svc


@pytest.fixture
def client(app, service):
    return app.test_client()
