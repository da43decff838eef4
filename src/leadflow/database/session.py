"""
Database session management
"""
from sqlalchemy import event
from sqlalchemy.orm import sessionmaker, Session
from typing import Optional

from leadflow.core.config import settings
from leadflow.database.connection import DatabasePool
from leadflow.database.models.base import Base


# Session factory - will be initialized after pool is ready
SessionLocal: Optional[sessionmaker] = None


def init_session_factory() -> None:
    """
    Initialize the session factory with the database engine.
    Should be called after DatabasePool.initialize()
    Sets the schema search path for PostgreSQL connections.
    """
    global SessionLocal
    if SessionLocal is None:
        engine = DatabasePool.get_engine()
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        database = settings.database
        if not database.is_sqlite and database.db_schema and database.db_schema != "public":
            @event.listens_for(engine, "connect")
            def set_search_path(dbapi_conn, connection_record):
                cursor = dbapi_conn.cursor()
                cursor.execute(f"SET search_path TO {database.db_schema}, public")
                cursor.close()


def reset_session_factory() -> None:
    """Drop the cached factory so the next session binds to a fresh engine"""
    global SessionLocal
    SessionLocal = None


def init_db() -> None:
    """
    Initialize database tables.
    Call this to create all tables defined in models.
    """
    # Import models so they register with Base.metadata
    import leadflow.database.models  # noqa: F401

    engine = DatabasePool.get_engine()
    Base.metadata.create_all(bind=engine)


def get_session() -> Session:
    """
    Get a new database session from the pool.
    Use this for manual session management outside of FastAPI dependencies.

    Raises:
        RuntimeError: If session factory is not initialized
    """
    if SessionLocal is None:
        init_session_factory()

    if SessionLocal is None:
        raise RuntimeError("Session factory not initialized. Call DatabasePool.initialize() first.")

    return SessionLocal()
