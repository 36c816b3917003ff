"""Database session utilities."""
from contextlib import contextmanager
import logging
import time
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, Session

from ..config import DATABASE_URL
from ..domain import models  # noqa: F401  registers tables on SQLModel.metadata
from ..domain.errors import StorageFailure

logger = logging.getLogger(__name__)

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, echo=False, future=True, connect_args=connect_args)
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    class_=Session,
)


def init_db(bind_engine: Optional[Engine] = None, attempts: int = 30) -> None:
    """Create tables if they do not exist.

    Retries on startup to wait for a database container to come up.
    """
    target_engine = bind_engine or engine
    last_err: Exception | None = None
    for attempt in range(1, attempts + 1):
        try:
            SQLModel.metadata.create_all(target_engine)
            return
        except SQLAlchemyError as exc:  # pragma: no cover
            last_err = exc
            logger.warning("waiting for database... (%d/%d) %s", attempt, attempts, exc)
            time.sleep(1)
    if last_err:
        raise last_err


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate driver errors raised inside the block into StorageFailure."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("storage failure during %s", operation)
        raise StorageFailure(f"Storage failure during {operation}") from exc


@contextmanager
def get_session() -> Iterator[Session]:
    session = SessionLocal()
    try:
        yield session
        with storage_errors("commit"):
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
