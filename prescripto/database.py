"""
Database connection and session management.
Provides SQLAlchemy engine, session, and base class for models.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .config import settings

# SQLite needs cross-thread access for the threadpool FastAPI runs sync routes in
connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

# Create SQLAlchemy engine for database connection
engine = create_engine(settings.database_url, connect_args=connect_args)

# Create session factory for database sessions
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

# Create base class for declarative models
Base = declarative_base()

def init_db() -> None:
    """
    Create all tables that do not exist yet.

    Deployed databases are managed by Alembic migrations; this is used at
    startup for local development databases.
    """
    # Import models so they are registered on the metadata
    from .auth import models as auth_models  # noqa: F401
    from .patients import models as patient_models  # noqa: F401
    from .doctors import models as doctor_models  # noqa: F401
    from .appointments import models as appointment_models  # noqa: F401
    from .medical_records import models as record_models  # noqa: F401
    from .core import audit_models  # noqa: F401

    Base.metadata.create_all(bind=engine)

def get_db():
    """
    Database dependency - Creates and yields a database session.

    The session is automatically closed after the request is processed,
    even if an exception occurs during request handling.

    Yields:
        SQLAlchemy Session: Database session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
