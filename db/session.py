from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.engine.url import make_url
from sqlalchemy.pool import StaticPool
from config.settings import settings
from db.base import Base
import logging

logger = logging.getLogger(__name__)

engine_kwargs = {"pool_pre_ping": True}

def _make_engine(database_url: str):
    url = make_url(database_url)
    if url.drivername.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        # In-memory databases live per connection; share one across threads
        if not url.database or url.database == ":memory:":
            return create_engine(str(url), connect_args=connect_args, poolclass=StaticPool)
        return create_engine(str(url), connect_args=connect_args, **engine_kwargs)
    return create_engine(str(url), pool_recycle=300, **engine_kwargs)

engine = _make_engine(settings.DATABASE_URL)

# Create sessionmaker
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db():
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database error: {e}")
        db.rollback()
        raise
    finally:
        db.close()

def create_tables():
    """Create all tables"""
    Base.metadata.create_all(bind=engine)

def drop_tables():
    """Drop all tables"""
    Base.metadata.drop_all(bind=engine)
