from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from appointment_desk.core.config import settings

connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create tables that do not exist yet (development convenience, Alembic owns production)."""
    from appointment_desk.models import models  # noqa: F401  registers the tables

    Base.metadata.create_all(bind=engine)
