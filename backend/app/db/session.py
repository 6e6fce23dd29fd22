from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from backend.app.core.config import settings

logger = logging.getLogger("inventory.db")

DATABASE_URL = settings.database_url

connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args = {"check_same_thread": False}

engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    echo=settings.database_echo,
    connect_args=connect_args,
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def enable_sqlite_foreign_keys(target_engine) -> None:
    """SQLite n'applique les FK qu'avec le PRAGMA (tests, dev local)."""

    @event.listens_for(target_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


if DATABASE_URL.startswith("sqlite"):
    enable_sqlite_foreign_keys(engine)


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    Une opération métier = une transaction.

    - commit si le bloc se termine normalement
    - rollback sur n'importe quelle exception, qui est re-levée telle quelle
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        logger.debug("transaction rolled back", exc_info=True)
        raise
