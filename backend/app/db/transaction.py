from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError, PersistenceError

logger = logging.getLogger(__name__)


@contextmanager
def atomic(db: Session, *, action: str) -> Iterator[Session]:
    """Run the enclosed writes as one unit: commit on success, roll back on any error."""
    try:
        yield db
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Integrity violation during %s: %s", action, exc.orig)
        raise ConflictError("The change conflicts with existing data") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Persistence failure during %s", action)
        raise PersistenceError() from exc
    except Exception:
        db.rollback()
        raise
