"""Database package - schema creation and session lifecycle.

Tables are defined as SQLAlchemy models in db.models; repositories in
db.repositories own all reads and writes. Must be called inside a Flask
application context.
"""

import logging

from sqlalchemy import text

logger = logging.getLogger(__name__)


def init_db():
    """Create missing tables and apply SQLite pragmas (idempotent)."""
    from extensions import db as sa_db
    import db.models  # noqa: F401

    sa_db.create_all()
    if sa_db.engine.dialect.name == "sqlite":
        with sa_db.engine.connect() as conn:
            conn.execute(text("PRAGMA journal_mode=WAL"))
            conn.execute(text("PRAGMA busy_timeout=5000"))
            conn.commit()
    logger.info("Database initialized (%s)", sa_db.engine.url.render_as_string(hide_password=True))


def close_db():
    """Release the current scoped session."""
    from extensions import db as sa_db
    sa_db.session.remove()
