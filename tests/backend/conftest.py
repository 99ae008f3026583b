import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.database import Base  # noqa: E402
from backend.models.appointment import Appointment  # noqa: E402,F401
from backend.models.provider import Provider  # noqa: E402
from backend.models.user import ROLE_ADMIN, ROLE_PATIENT, User  # noqa: E402

ROUTE_MODULES = (
    'backend.routes.user_routes',
    'backend.routes.provider_routes',
    'backend.routes.appointment_routes',
)


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    for module_path in ROUTE_MODULES:
        monkeypatch.setattr(f'{module_path}.ensure_database_ready', lambda: None)


@pytest.fixture
def make_user(db):
    counter = {'value': 0}

    def _make_user(role: str = ROLE_PATIENT, **fields) -> User:
        counter['value'] += 1
        defaults = {
            'name': f'Usuario{counter["value"]}',
            'lastname': 'Prueba',
            'email': f'usuario{counter["value"]}@clinica.org',
            'phone': '555-0100',
            'image': 'https://clinica.org/avatar.png',
            'hashed_password': 'not-a-real-hash',
            'role': role,
        }
        defaults.update(fields)
        user = User(**defaults)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def admin(make_user) -> User:
    return make_user(ROLE_ADMIN, name='Ada', lastname='Admin', email='admin@clinica.org')


@pytest.fixture
def make_provider(db, make_user):
    def _make_provider(specialty: str = 'Medicina General', **user_fields) -> Provider:
        user = make_user('provider', **user_fields)
        provider = Provider(users_id=user.id, specialty=specialty)
        db.add(provider)
        db.commit()
        db.refresh(provider)
        return provider

    return _make_provider
