from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from app.core.config import settings


def engine_options(database_url: str) -> dict:
    """
    Build create_engine() keyword arguments for the configured backend.

    Every storage call is bounded by DB_TIMEOUT_SECONDS so a stalled
    connection fails fast with an OperationalError instead of holding a worker.
    """
    timeout = settings.DB_TIMEOUT_SECONDS

    if database_url.startswith("sqlite"):
        # SQLite has no pool sizing or statement timeout, only a busy timeout
        # check_same_thread=False: FastAPI runs sync dependencies in a thread pool
        return {"connect_args": {"timeout": timeout, "check_same_thread": False}}

    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_recycle": settings.DB_POOL_RECYCLE_SECONDS,
        "pool_timeout": timeout,
        "pool_pre_ping": True,
        "connect_args": {
            "connect_timeout": timeout,
            "options": f"-c statement_timeout={timeout * 1000}",
        },
    }


# Create database engine - manages connection pool
engine = create_engine(settings.DATABASE_URL, **engine_options(settings.DATABASE_URL))

# Create session factory - each request gets a new session
# autocommit=False: Changes require explicit commit (prevents accidental commits)
# autoflush=False: Don't auto-flush before queries (better performance)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all database models
Base = declarative_base()


def get_db():
    """
    Dependency for getting database session.

    The session is automatically closed after the request completes (via finally block).
    Using yield makes this a generator dependency - FastAPI handles the cleanup.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        # Always close session, even if request raises an exception
        db.close()
