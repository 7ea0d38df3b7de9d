from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy import and_, insert, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session


def insert_skip_duplicates(
    db: Session,
    model: type,
    rows: Sequence[dict[str, Any]],
    *,
    conflict_columns: Sequence[str],
) -> int:
    """Insert ``rows`` ignoring those that collide on ``conflict_columns``.

    Returns the number of rows actually inserted. PostgreSQL and SQLite use
    ``ON CONFLICT DO NOTHING``; other dialects filter out existing keys first.
    """
    if not rows:
        return 0

    table = model.__table__
    dialect = db.get_bind().dialect.name

    if dialect in ("postgresql", "sqlite"):
        builder = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = builder(table).values(list(rows)).on_conflict_do_nothing(index_elements=list(conflict_columns))
        result = db.execute(stmt)
        return max(result.rowcount or 0, 0)

    key_cols = [table.c[name] for name in conflict_columns]
    keys = {tuple(row[name] for name in conflict_columns) for row in rows}
    if len(key_cols) == 1:
        existing_stmt = select(key_cols[0]).where(key_cols[0].in_([k[0] for k in keys]))
    else:
        existing_stmt = select(*key_cols).where(
            or_(*(and_(*(col == value for col, value in zip(key_cols, key))) for key in keys))
        )
    existing = {tuple(r) for r in db.execute(existing_stmt).all()}

    fresh: list[dict[str, Any]] = []
    seen: set[tuple] = set()
    for row in rows:
        key = tuple(row[name] for name in conflict_columns)
        if key in existing or key in seen:
            continue
        seen.add(key)
        fresh.append(row)
    if fresh:
        db.execute(insert(table), fresh)
    return len(fresh)
