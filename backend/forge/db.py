from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger
from sqlalchemy import MetaData, create_engine, event, inspect, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .core.config import settings
from .core.diagnostics import log_warning
from .errors import DatabaseError, FilesystemError, SchemaError

BACKUP_SUFFIX = "~"
SCHEMA_VERSION_KEY = "schema_version"

Base = declarative_base()


@dataclass(slots=True, eq=False)
class DatabaseHandle:
    """An open, file-backed SQLite database."""

    path: Path
    engine: Engine
    session_factory: sessionmaker[Session]
    closed: bool = field(default=False)

    def session(self) -> Session:
        if self.closed:
            raise DatabaseError(f"Database handle for {self.path} is closed")
        return self.session_factory()


# ----------------------------------------------------------------------
# On-disk file management


def ensure_fresh(path: Path, discard: bool) -> bool:
    """Delete the database file at ``path`` when ``discard`` is requested.

    Returns ``True`` if a file was removed.
    """

    path = Path(path)
    if not discard or not path.exists():
        return False
    try:
        path.unlink()
    except OSError as exc:
        raise FilesystemError(f"Unable to delete database file {path}: {exc}") from exc
    logger.debug("Discarded database file {}", path)
    return True


def backup_and_clear(path: Path) -> Path | None:
    """Move the live database file aside so the next open starts empty."""

    path = Path(path)
    backup = path.with_name(path.name + BACKUP_SUFFIX)
    if not path.exists():
        return None
    try:
        if backup.exists():
            log_warning(f"Deleting old backup file: {backup}")
            backup.unlink()
        log_warning(f"Database restart requested, moving file: {path} to {backup}")
        os.replace(path, backup)
    except OSError as exc:
        raise FilesystemError(f"Unable to back up database file {path}: {exc}") from exc
    return backup


# ----------------------------------------------------------------------
# Handles


def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _create_engine(path: Path) -> Engine:
    # Stages run their blocking work on worker threads, so connections must be
    # usable outside the thread that created them.
    engine = create_engine(
        f"sqlite:///{path}",
        echo=settings.debug,
        future=True,
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _enable_foreign_keys)
    return engine


def _create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=True, autocommit=False, future=True)


def open_database(path: Path) -> DatabaseHandle:
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DatabaseError(f"Unable to create directory for {path}: {exc}") from exc

    engine = _create_engine(path)
    try:
        with engine.connect() as connection:
            # Reading the schema cookie forces SQLite to parse the file header,
            # which surfaces "file is not a database" on corrupt files.
            connection.execute(text("PRAGMA schema_version")).scalar()
    except SQLAlchemyError as exc:
        engine.dispose()
        raise DatabaseError(f"Unable to open database {path}: {exc}") from exc

    logger.debug("Opened database {}", path)
    return DatabaseHandle(
        path=path, engine=engine, session_factory=_create_session_factory(engine)
    )


def close_database(handle: DatabaseHandle) -> None:
    if handle.closed:
        return
    handle.engine.dispose()
    handle.closed = True
    if _main_database is handle:
        reset_main_database()
    logger.debug("Closed database {}", handle.path)


def apply_schema(
    handle: DatabaseHandle,
    version: int,
    metadata: MetaData | None = None,
) -> DatabaseHandle:
    """Create all tables and pin the schema version of the database."""

    from . import models

    metadata = metadata if metadata is not None else Base.metadata
    try:
        existing = _stored_schema_version(handle.engine)
        if existing is not None and existing != str(version):
            raise SchemaError(
                f"Database {handle.path} has schema version {existing}, expected {version}"
            )
        metadata.create_all(bind=handle.engine)
        if existing is None:
            with session_scope(handle) as session:
                session.add(models.SchemaInfo(key=SCHEMA_VERSION_KEY, value=str(version)))
    except SQLAlchemyError as exc:
        raise SchemaError(f"Unable to apply schema to {handle.path}: {exc}") from exc
    return handle


def _stored_schema_version(engine: Engine) -> str | None:
    from .models import SchemaInfo

    if not inspect(engine).has_table(SchemaInfo.__tablename__):
        return None
    with Session(engine) as session:
        return session.execute(
            select(SchemaInfo.value).where(SchemaInfo.key == SCHEMA_VERSION_KEY)
        ).scalar_one_or_none()


@contextmanager
def session_scope(handle: DatabaseHandle) -> Iterator[Session]:
    session = handle.session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ----------------------------------------------------------------------
# Main database accessor used by the serving interface

_main_database: DatabaseHandle | None = None


def resolve_main_database(handle: DatabaseHandle) -> DatabaseHandle:
    global _main_database
    _main_database = handle
    return handle


def main_database() -> DatabaseHandle:
    if _main_database is None:
        raise DatabaseError("Main database has not been initialized")
    return _main_database


def reset_main_database() -> None:
    global _main_database
    _main_database = None


def get_db() -> Iterator[Session]:
    """FastAPI dependency yielding a session on the main database."""

    with session_scope(main_database()) as session:
        yield session


__all__ = [
    "BACKUP_SUFFIX",
    "Base",
    "DatabaseHandle",
    "apply_schema",
    "backup_and_clear",
    "close_database",
    "ensure_fresh",
    "get_db",
    "main_database",
    "open_database",
    "reset_main_database",
    "resolve_main_database",
    "session_scope",
]
