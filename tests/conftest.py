from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from devcamper.auth.passwords import hash_password
from devcamper.core.config import Settings
from devcamper.core.geocoder import GeoLocation, LocationNotFoundError
from devcamper.core.mailer import MailError
from devcamper.database import Base, build_engine, build_session_factory
from devcamper.models import bootcamp, course, review, user  # noqa: F401
from devcamper.models.bootcamp import Bootcamp
from devcamper.models.user import User

DEFAULT_PASSWORD = '123456'

BOSTON = GeoLocation(
    latitude=42.3601,
    longitude=-71.0589,
    formatted_address='233 Bay State Rd, Boston, MA 02215, US',
    street='233 Bay State Rd',
    city='Boston',
    state='MA',
    zipcode='02215',
    country='US',
)


class FakeGeocoder:
    def __init__(self, locations: dict[str, GeoLocation] | None = None, default: GeoLocation | None = BOSTON):
        self.locations = dict(locations or {})
        self.default = default
        self.lookups: list[str] = []

    def geocode(self, address: str) -> GeoLocation:
        self.lookups.append(address)
        if address in self.locations:
            return self.locations[address]
        if self.default is None:
            raise LocationNotFoundError(f'No location found for {address}')
        return self.default


class FakeMailer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    def send(self, to: str, subject: str, body: str) -> None:
        if self.fail:
            raise MailError('SMTP connection refused')
        self.sent.append({'to': to, 'subject': subject, 'body': body})


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url='sqlite://',
        jwt_secret_key='test-secret',
        file_upload_path=str(tmp_path / 'uploads'),
        max_file_upload_size=1024,
        smtp_host='smtp.example.test',
    )


@pytest.fixture
def db():
    engine = build_engine('sqlite://')
    Base.metadata.create_all(bind=engine)
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_user(db):
    created = {'count': 0}

    def _make_user(role: str = 'user', email: str | None = None, password: str = DEFAULT_PASSWORD) -> User:
        created['count'] += 1
        account = User(
            name=f'{role.title()} {created["count"]}',
            email=email or f'{role}{created["count"]}@example.com',
            role=role,
            hashed_password=hash_password(password),
        )
        db.add(account)
        db.commit()
        db.refresh(account)
        return account

    return _make_user


@pytest.fixture
def make_bootcamp(db):
    created = {'count': 0}

    def _make_bootcamp(owner: User, location: GeoLocation = BOSTON, **fields) -> Bootcamp:
        created['count'] += 1
        values = {
            'name': f'Bootcamp {created["count"]}',
            'slug': f'bootcamp-{created["count"]}',
            'description': 'Full stack web development',
            'address': location.formatted_address or 'somewhere',
            'careers': ['Web Development'],
        }
        values.update(fields)
        camp = Bootcamp(user_id=owner.id, **values)
        camp.apply_location(location)
        db.add(camp)
        db.commit()
        db.refresh(camp)
        return camp

    return _make_bootcamp


@pytest.fixture
def fake_request():
    return SimpleNamespace(base_url='http://testserver/', query_params={})


@pytest.fixture
def client(settings):
    from devcamper.main import create_app

    app = create_app(settings)
    app.state.geocoder = FakeGeocoder()
    app.state.mailer = FakeMailer()
    with TestClient(app) as test_client:
        yield test_client
