from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from app.db.base import Base
from app.db.session import engine as default_engine
import app.models  # noqa: F401  registers every table on Base.metadata

logger = logging.getLogger(__name__)


def missing_tables(engine: Engine | None = None) -> list[str]:
    bind = engine or default_engine
    existing = set(inspect(bind).get_table_names())
    return sorted(name for name in Base.metadata.tables if name not in existing)


def init_db(engine: Engine | None = None) -> None:
    """Create any table that does not exist yet. Migrations own schema changes."""
    bind = engine or default_engine
    pending = missing_tables(bind)
    if not pending:
        return
    logger.info("Creating missing tables: %s", ", ".join(pending))
    Base.metadata.create_all(bind=bind)
