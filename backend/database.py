from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config
from backend.core.errors import StorageError


DATABASE_URL = config.DATABASE_URL

# Managed Postgres hosts still hand out the legacy scheme.
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=connect_args, echo=config.DATABASE_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_provider_schema_checked = False
_appointment_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_provider_schema() -> None:
    """Add the one-profile-per-user index to provider tables created before it existed."""
    global _provider_schema_checked

    if _provider_schema_checked:
        return

    with _schema_lock:
        if _provider_schema_checked:
            return

        inspector = inspect(engine)

        if 'providers' not in inspector.get_table_names():
            _provider_schema_checked = True
            return

        with engine.begin() as connection:
            connection.execute(
                text('CREATE UNIQUE INDEX IF NOT EXISTS uq_providers_users_id ON providers(users_id)')
            )

        _provider_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        with engine.begin() as connection:
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_date_time ON appointments(appointment_date, appointment_time)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_provider_date ON appointments(provider_id, appointment_date)')
            )

        _appointment_schema_checked = True


def ensure_database_ready() -> None:
    try:
        ensure_provider_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise StorageError(
            'Base de datos no disponible. Verifique DATABASE_URL y las credenciales.',
            error=str(exc),
        ) from exc
