"""Database connection and session management."""
from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool
from cotrack.config import settings

if settings.database_url.startswith("sqlite"):
    # Single shared connection so in-memory databases survive across sessions
    engine = create_engine(
        settings.database_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
elif settings.environment in ("development", "production"):
    # Check if using pooler connection (recommended)
    if "pooler.supabase.com" in settings.database_url or settings.database_url.endswith(":6543"):
        engine = create_engine(
            settings.database_url,
            poolclass=NullPool,  # Required for pooler connections
            echo=settings.environment == "development",
        )
    else:
        engine = create_engine(
            settings.database_url,
            pool_size=20,
            max_overflow=10,
            pool_pre_ping=True,
            echo=settings.environment == "development",
        )
else:
    engine = create_engine(
        settings.database_url,
        poolclass=NullPool,
    )

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def check_database_connection(db) -> bool:
    """Return True when a trivial query succeeds on the given session."""
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
