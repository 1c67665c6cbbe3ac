"""Engine, session factory and the request-scoped session dependency."""

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from gradebook.core.config import settings


class Base(DeclarativeBase):
    """Declarative base shared by every model."""


# SQL echo stays off; import progress is logged by the services
engine = create_engine(
    settings.database_url_sync,
    pool_pre_ping=True,
    pool_size=settings.DB_POOL_SIZE,
    max_overflow=settings.DB_MAX_OVERFLOW,
)

SessionLocal = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    """Yield one session per request.

    The session commits when the endpoint returns and rolls back if it raises.
    Per-row failures inside an import never reach this point; they are
    confined to their own SAVEPOINT.
    """
    with SessionLocal() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
