from sqlalchemy import create_engine, DateTime
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.types import TypeDecorator
from datetime import timezone
import logging

from kyc_portal.config import settings

logger = logging.getLogger(__name__)

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

connect_args = {}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    # SQLite connections are shared across FastAPI's threadpool
    connect_args = {"check_same_thread": False}

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args=connect_args
    # For production PostgreSQL, you might want to configure pool size, etc.
    # pool_size=10, max_overflow=20
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

class UTCDateTime(TypeDecorator):
    """Timezone-aware DateTime that always reads back in UTC.

    SQLite drops the offset on write, so naive values read from it are tagged as UTC.
    """
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

# Dependency to get DB session in FastAPI routes
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def import_all_models():
    # Models register themselves with Base on import; create_all only sees imported tables.
    from kyc_portal.credit_scoring import models as credit_models # noqa: F401
    from kyc_portal.third_party_integration import models as third_party_models # noqa: F401

def create_all_tables(bind=None):
    import_all_models()
    target = bind or engine
    logger.info("Creating all tables in the database...")
    Base.metadata.create_all(bind=target)
    logger.info("Tables created (if they didn't exist).")

if __name__ == "__main__":
    # Allows running `python -m kyc_portal.database` to create tables
    logging.basicConfig(level=settings.LOG_LEVEL)
    create_all_tables()
