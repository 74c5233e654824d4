from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from .config import settings


def configure_sqlite_engine(engine):
    """
    Apply SQLite connection settings: foreign keys on, and every transaction
    opened with BEGIN IMMEDIATE.

    SQLite ignores SELECT ... FOR UPDATE, so the write lock taken at BEGIN is
    what serializes capacity checks and claim confirmations. Not usable on a
    single shared connection (StaticPool), where transactions would nest.
    """
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, _):
        # Hand transaction control to the "begin" listener below
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


connect_args = {"check_same_thread": False, "timeout": 30} if settings.is_sqlite else {}

engine = create_engine(
    settings.resolved_database_url,
    connect_args=connect_args,
    pool_pre_ping=not settings.is_sqlite,
)

if settings.is_sqlite:
    configure_sqlite_engine(engine)

# SessionLocal: every request handler and the sweep open their own session
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """Session factory for work that opens its own sessions (waitlist sweep)."""
    return SessionLocal
