"""Database session configuration."""

from __future__ import annotations

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from bulk_stage.core.errors import ConflictError, UpstreamFailure
from bulk_stage.core.settings import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated when create_all runs.
import bulk_stage.models  # noqa: E402,F401

_connect_args = (
    {"check_same_thread": False}
    if settings.effective_database_url.startswith("sqlite")
    else {}
)

engine = create_engine(
    settings.effective_database_url,
    pool_pre_ping=True,
    echo=settings.sql_debug,
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(
    db: Session,
    *,
    operation: str = "transaction",
    conflict: str | None = None,
) -> Iterator[Session]:
    """Run the enclosed block as one transaction on ``db``.

    Commits on success. Any ``SQLAlchemyError`` rolls the whole block back and is
    re-raised as :class:`UpstreamFailure`; other exceptions roll back and propagate.
    When ``conflict`` is given, a unique violation is re-raised as
    :class:`ConflictError` carrying that message instead.

    Args:
        db: Session the block writes through.
        operation: Label used in log records.
        conflict: Message for unique violations, if the caller treats them as conflicts.

    Raises:
        ConflictError: If ``conflict`` is set and the write hits a unique constraint.
        UpstreamFailure: If the database rejects any statement or the commit.
    """
    try:
        yield db
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if conflict is None:
            logger.error("Database %s failed; rolled back", operation, exc_info=True)
            raise UpstreamFailure(f"{operation} failed") from exc
        logger.info("Database %s hit a unique constraint: %s", operation, conflict)
        raise ConflictError(conflict) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Database %s failed; rolled back", operation, exc_info=True)
        raise UpstreamFailure(f"{operation} failed") from exc
    except BaseException:
        db.rollback()
        raise


def create_tables() -> None:
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)


def drop_tables() -> None:
    """Drop all database tables."""
    Base.metadata.drop_all(bind=engine)
