"""
INSERT ... ON CONFLICT DO UPDATE for the dialects we run on.

Postgres in production, SQLite in tests. Both accept the same
on_conflict_do_update(index_elements=..., set_=...) call.
"""

from collections.abc import Iterable
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(db: AsyncSession, model):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upsert not supported on dialect: {dialect}")


async def upsert(
    db: AsyncSession,
    model,
    values: dict[str, Any],
    *,
    conflict_on: Iterable[str],
    update_fields: Iterable[str],
    returning: Iterable[Any] = (),
):
    """
    Insert `values`, or update `update_fields` of the row that already
    holds the same `conflict_on` key. Returns the RETURNING row, if asked for.

    Column.onupdate hooks do not fire for ON CONFLICT updates, so callers
    pass updated_at explicitly.
    """
    stmt = dialect_insert(db, model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(conflict_on),
        set_={name: stmt.excluded[name] for name in update_fields},
    )
    returning = list(returning)
    if returning:
        stmt = stmt.returning(*returning)
        return (await db.execute(stmt)).one()
    await db.execute(stmt)
    return None
