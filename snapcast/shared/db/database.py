# snapcast/shared/db/database.py

import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from dotenv import load_dotenv

from snapcast.core.config import settings

load_dotenv()

logger = logging.getLogger(__name__)

# SQLite needs cross-thread access for the test client and the worker pool.
connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)

Session_Local = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Every model (User, Video, Transcript) inherits from this Base.
Base = declarative_base()


def init_db(bind=None):
    """Create all tables known to the metadata."""
    # Import models so they register on Base.metadata
    from snapcast.models import auth, video  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables are ready.")


# --- Dependency Injection for FastAPI ---
def get_db_session():
    """
    Opens a session for one request, hands it to the endpoint, and always
    closes it once the endpoint returns.
    """
    db = Session_Local()
    try:
        yield db
    finally:
        db.close()
