from contextlib import contextmanager
from threading import Lock

from fastapi import Request
from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from devcamper.core.errors import ApiError, ServerError, ValidationError


Base = declarative_base()

_schema_lock = Lock()
_checked_engines: set[Engine] = set()


def build_engine(database_url: str) -> Engine:
    if not database_url.startswith("sqlite"):
        return create_engine(database_url, pool_pre_ping=True)

    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, or each session would see its own empty database.
        engine = create_engine(database_url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        engine = create_engine(database_url, connect_args={"check_same_thread": False})

    # pysqlite defers BEGIN until the first DML statement, which breaks SAVEPOINT; emit it ourselves.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection):
        connection.exec_driver_sql("BEGIN")

    return engine


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
    )


def ensure_schema(engine: Engine) -> None:
    # Import for the side effect of registering every table on Base.metadata.
    from devcamper.models import bootcamp, course, review, user  # noqa: F401

    if engine in _checked_engines:
        return

    with _schema_lock:
        if engine in _checked_engines:
            return

        Base.metadata.create_all(bind=engine)

        inspector = inspect(engine)
        existing_columns = {column['name'] for column in inspector.get_columns('bootcamps')}
        migration_steps = [
            ('average_rating', 'ALTER TABLE bootcamps ADD COLUMN average_rating FLOAT'),
            ('average_cost', 'ALTER TABLE bootcamps ADD COLUMN average_cost INTEGER'),
            ('photo', "ALTER TABLE bootcamps ADD COLUMN photo VARCHAR DEFAULT 'no-photo.jpg'"),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_bootcamps_lat_lng ON bootcamps(latitude, longitude)')
            )

        _checked_engines.add(engine)


def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def write_transaction(db: Session):
    """Commit the work done in the block, or roll it back and raise an API error."""
    try:
        yield db
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError('Duplicate field value entered') from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise ServerError('Database unavailable. Verify DATABASE_URL.') from exc
    except ApiError:
        db.rollback()
        raise
