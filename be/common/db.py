import logging
import sqlite3
from contextlib import contextmanager

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import case, event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

db = SQLAlchemy()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores FOREIGN KEY clauses unless asked per connection
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def dialect_name():
    return db.session.get_bind().dialect.name


def upsert(model):
    """Return an INSERT for ``model`` that supports ``on_conflict_do_update``."""
    name = dialect_name()
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"atomic upsert is not supported on {name}")


def floor_at_zero(expr):
    """GREATEST(0, expr), portable across PostgreSQL and SQLite."""
    return case((expr < 0, 0), else_=expr)


def chunked(items, size):
    items = list(items)
    for start in range(0, len(items), size):
        yield items[start:start + size]


class UnitOfWork:
    def __init__(self):
        self._after_commit = []

    def after_commit(self, fn, *args):
        """Queue ``fn(*args)`` to run once the transaction has committed."""
        self._after_commit.append((fn, args))

    def _run_after_commit(self):
        for fn, args in self._after_commit:
            fn(*args)


@contextmanager
def unit_of_work():
    """One database transaction.

    Commits when the block exits cleanly and then runs the after-commit
    callbacks; rolls back and re-raises on any exception, discarding them.
    """
    uow = UnitOfWork()
    try:
        yield uow
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    uow._run_after_commit()
