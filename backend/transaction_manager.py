"""Transaction context manager for safe database writes.

Wraps database operations in a SQLAlchemy transaction with automatic
rollback on failure. Storage-layer faults surface as PersistenceError so
callers never have to know about SQLAlchemy exception types.
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from error_handler import PersistenceError

logger = logging.getLogger(__name__)


@contextmanager
def transaction() -> Generator:
    """Execute database writes inside a transaction.

    Usage::

        with transaction() as session:
            session.add(...)

    Yields:
        The Flask-SQLAlchemy session.

    Raises:
        PersistenceError: If the transaction fails and is rolled back.
    """
    from extensions import db
    session = db.session
    try:
        yield session
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        logger.warning("Transaction rolled back (integrity): %s", exc)
        raise PersistenceError(
            str(exc),
            code="DB_002",
            context={"db_error": type(exc).__name__},
        ) from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Transaction rolled back: %s", exc)
        raise PersistenceError(
            str(exc),
            context={"db_error": type(exc).__name__},
        ) from exc
    except Exception:
        session.rollback()
        raise
