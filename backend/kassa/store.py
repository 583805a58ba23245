# Overview: Persistent store plumbing: SQLite transaction mode, schema upgrades, shutdown.

"""
Kassa store lifecycle (authoritative)

- One Flask application object is created per process by create_app(); it owns
  the SQLAlchemy engine. Services reach the store only through db.session
  inside that application's context.
- Every SQLite transaction starts with BEGIN IMMEDIATE: writers serialise on
  the database lock, and each engine operation reads the rows it will write
  while already holding that lock. The driver busy timeout bounds the wait.
- The schema is owned by the Alembic revision chain in ./migrations. Startup
  upgrades to head in a single transaction or fails loudly.
- dispose_store() closes pooled connections at shutdown.
"""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.runtime.migration import MigrationContext
from flask import Flask
from sqlalchemy import event
from sqlalchemy.engine import Engine

from .errors import MigrationError
from .extensions import db, migrate

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


def _on_connect(dbapi_connection, connection_record):
    # pysqlite defers BEGIN until the first DML statement; take control of it.
    dbapi_connection.isolation_level = None


def _on_begin(conn):
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def configure_sqlite_engine(engine: Engine) -> None:
    """Install the transaction hooks on a SQLite engine (idempotent)."""
    if engine.dialect.name != "sqlite":
        return
    if not event.contains(engine, "connect", _on_connect):
        event.listen(engine, "connect", _on_connect)
    if not event.contains(engine, "begin", _on_begin):
        event.listen(engine, "begin", _on_begin)


def ensure_sqlite_directory(uri: str) -> None:
    """Create the parent directory of a file-backed SQLite URI."""
    prefix = "sqlite:///"
    if not uri.startswith(prefix):
        return
    path = uri[len(prefix):]
    if not path or path == ":memory:" or path.startswith("file:"):
        return
    Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)


def run_migrations(app: Flask, revision: str = "head") -> str | None:
    """
    Upgrade the store to ``revision``.

    Safe on every startup: a store already at head is left untouched, and
    each revision checks for existing tables/columns before altering.

    Raises:
        MigrationError: wrapping whatever aborted the upgrade. The upgrade runs
            in one transaction, so the store is left at its previous version.
    """
    with app.app_context():
        config = migrate.get_config(directory=str(MIGRATIONS_DIR))
        before = schema_revision()
        try:
            command.upgrade(config, revision)
        except Exception as exc:
            logger.critical("Schema upgrade from %s to %s failed: %s", before, revision, exc)
            raise MigrationError(
                f"Schema upgrade to {revision} failed: {exc}",
                details={"from_revision": before, "target": revision},
            ) from exc
        after = schema_revision()

    if before != after:
        logger.info("Store schema upgraded from %s to %s", before or "<empty>", after)
    return after


def schema_revision(connection=None) -> str | None:
    """Current Alembic revision recorded in the store (None for an unversioned store)."""
    if connection is not None:
        return MigrationContext.configure(connection).get_current_revision()
    with db.engine.connect() as conn:
        return MigrationContext.configure(conn).get_current_revision()


def dispose_store(app: Flask) -> None:
    with app.app_context():
        db.session.remove()
        db.engine.dispose()
