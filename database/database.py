import os

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.exc import OperationalError, DBAPIError, DisconnectionError

from utils.state import State

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./patient_records.db")

engine = create_engine(
    DATABASE_URL,
    connect_args=(
        {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
    ),
    # Recycle connections the managed database dropped while idle
    pool_pre_ping=True,
)


def enable_sqlite_foreign_keys(target_engine):
    """Make SQLite honour ON DELETE CASCADE on the patient child tables."""
    if target_engine.dialect.name != "sqlite":
        return

    @event.listens_for(target_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()


enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


class DatabaseConnectionError(Exception):
    """Raised when the DB connection fails (e.g. psycopg2 OperationalError).

    Mapped to a 503 by the global exception handlers.
    """


def get_db():
    db = SessionLocal()
    try:
        try:
            yield db
        except (OperationalError, DisconnectionError) as e:
            State.logger.exception(f"Database operational error: {e}")
            raise DatabaseConnectionError(str(e)) from e
        except DBAPIError:
            db.rollback()
            raise
    finally:
        db.close()
