"""Database lifecycle and transaction helpers."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .models import db

logger = logging.getLogger(__name__)

_PG_UNIQUE_VIOLATION = "23505"


def init_db() -> None:
    db.create_all()
    logger.debug("Database schema ensured")


def drop_db() -> None:
    db.drop_all()


@contextmanager
def unit_of_work() -> Iterator[Session]:
    """Run a block as one database transaction.

    Commits when the block finishes, rolls back and re-raises on any error so
    an account row and its log row are never written separately.
    """
    session = db.session
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code == _PG_UNIQUE_VIOLATION
    message = str(orig or exc).lower()
    return "unique" in message or "duplicate" in message
