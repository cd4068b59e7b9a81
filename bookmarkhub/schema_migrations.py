from __future__ import annotations

from sqlalchemy import inspect, text

from bookmarkhub.extensions import db

# Columns added after the first release, keyed by table.
LATE_COLUMNS = {
    "bookmarks": {
        "favicon_source": "VARCHAR(64)",
        "time_spent": "INTEGER NOT NULL DEFAULT 0",
        "engagement_score": "INTEGER NOT NULL DEFAULT 0",
        "last_visited_at": "DATETIME",
        "link_status": "VARCHAR(64)",
        "last_checked_at": "DATETIME",
    },
    "categories": {
        "logo": "TEXT",
    },
}


def add_missing_columns() -> list[str]:
    """Bring an older SQLite file up to the current model without Alembic."""
    engine = db.engine
    if engine.dialect.name != "sqlite":
        return []

    inspector = inspect(engine)
    added: list[str] = []
    for table, columns in LATE_COLUMNS.items():
        if not inspector.has_table(table):
            continue
        present = {column["name"] for column in inspector.get_columns(table)}
        for name, ddl in columns.items():
            if name in present:
                continue
            db.session.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl}"))
            added.append(f"{table}.{name}")

    if added:
        db.session.commit()
    return added
