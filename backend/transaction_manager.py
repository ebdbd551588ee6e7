"""Transaction context manager for safe database writes.

Wraps a unit of work in one SQLAlchemy transaction: either every statement
is committed or the session is rolled back and a StorageError is raised.
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from error_handler import StorageError

logger = logging.getLogger(__name__)


@contextmanager
def transaction() -> Generator:
    """Execute database writes inside a transaction.

    Usage::

        with transaction() as session:
            session.execute(...)

    Yields:
        The Flask-SQLAlchemy session.

    Raises:
        StorageError: If the transaction fails and is rolled back.
    """
    from extensions import db

    session = db.session
    try:
        yield session
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        logger.warning("Transaction rolled back (integrity): %s", exc)
        raise StorageError(
            str(exc.orig) if exc.orig is not None else str(exc),
            code="DB_002",
            context={"db_error": type(exc).__name__},
        ) from exc
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Transaction rolled back (database): %s", exc)
        raise StorageError(str(exc), context={"db_error": type(exc).__name__}) from exc
    except Exception as exc:
        session.rollback()
        logger.error("Transaction rolled back (unexpected): %s", exc)
        raise
