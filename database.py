"""Database helpers: the transactional scope shared by the circulation and
role-assignment operations, plus schema bootstrap.
"""
import functools
import logging
import time
from contextlib import contextmanager

from sqlalchemy import insert, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from errors import LibraryError, StorageFailure
from extensions import db
from models import DEFAULT_ROLES, Role

logger = logging.getLogger(__name__)


def _rollback(transaction):
    # A failed rollback must not mask the error that triggered it
    try:
        transaction.rollback()
    except SQLAlchemyError as e:
        logger.error(f"Rollback failed: {str(e)}")


@contextmanager
def transaction_scope():
    """Yield a dedicated connection inside a transaction.

    Commits when the block finishes, rolls back on any exception and always
    releases the connection. Storage errors (including a failed commit) are
    re-raised as StorageFailure; everything else propagates unchanged.
    """
    try:
        connection = db.engine.connect()
    except SQLAlchemyError as e:
        logger.error(f"Could not acquire database connection: {str(e)}")
        raise StorageFailure() from e
    try:
        transaction = connection.begin()
        try:
            yield connection
            transaction.commit()
        except LibraryError as e:
            logger.debug(f"Transaction aborted: {e.code}")
            _rollback(transaction)
            raise
        except SQLAlchemyError as e:
            logger.error(f"Transaction failed, rolling back: {str(e)}")
            _rollback(transaction)
            raise StorageFailure() from e
        except Exception:
            logger.exception("Unexpected error inside transaction, rolling back")
            _rollback(transaction)
            raise
    except SQLAlchemyError as e:
        # begin() itself failed
        logger.error(f"Could not begin transaction: {str(e)}")
        raise StorageFailure() from e
    finally:
        connection.close()


def retry_db_operation(max_attempts=3, delay=1):
    """Retry read-only work on transient OperationalErrors."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            attempts = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except OperationalError as e:
                    logger.error(f"Database operation failed: {str(e)}")
                    db.session.rollback()
                    attempts += 1
                    if attempts >= max_attempts:
                        raise
                    time.sleep(delay)
                    logger.debug(f"Retrying database operation ({attempts}/{max_attempts})")
        return wrapper
    return decorator


def ensure_roles():
    """Insert any of the default roles that are missing."""
    roles = Role.__table__
    with transaction_scope() as conn:
        existing = set(conn.execute(select(roles.c.role_name)).scalars())
        missing = [name for name in DEFAULT_ROLES if name not in existing]
        if missing:
            conn.execute(insert(roles), [{'role_name': name} for name in missing])
            logger.debug(f"Seeded roles: {', '.join(missing)}")


def init_db(app):
    with app.app_context():
        db.create_all()
        ensure_roles()
        logger.debug(f"Database ready: {db.engine.url.render_as_string(hide_password=True)}")
