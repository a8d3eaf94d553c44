"""
Dialect-aware INSERT ... ON CONFLICT DO NOTHING.

PostgreSQL and SQLite both support the clause, but SQLAlchemy exposes it on
each dialect's own ``insert`` construct.
"""

from typing import Any, Iterable

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


async def insert_ignore(
    db: AsyncSession,
    model: Any,
    values: dict,
    conflict_columns: Iterable[str],
) -> None:
    """
    Insert a row unless it collides with an existing one on ``conflict_columns``.

    The caller re-reads the row afterwards to learn which insert won.
    """
    dialect = db.get_bind().dialect.name
    try:
        insert = _INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"insert_ignore is not supported on {dialect}")

    stmt = insert(model).values(**values).on_conflict_do_nothing(
        index_elements=list(conflict_columns)
    )
    await db.execute(stmt)
