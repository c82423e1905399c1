from __future__ import annotations

from sqlalchemy import inspect

from clubreview.extensions import db

CORE_TABLES = {
    'admin_user',
    'club_application',
    'club_application_history',
    'admin_action_log',
    'notification_delivery',
}


def ensure_core_tables() -> bool:
    """Create the ORM tables when a fresh database has none of them.

    This is a development convenience so the app can run without manual
    Alembic steps. Returns True when tables were created.
    """
    inspector = inspect(db.engine)
    existing = set(inspector.get_table_names())
    if CORE_TABLES.issubset(existing):
        return False
    db.create_all()
    return True


__all__ = ["ensure_core_tables", "CORE_TABLES"]
