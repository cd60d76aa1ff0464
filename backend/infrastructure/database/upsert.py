"""Dialect-aware INSERT ... ON CONFLICT DO UPDATE."""

from typing import Any, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from .models.base import Base, utcnow

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


async def upsert(
    db: AsyncSession,
    model: type[Base],
    values: dict[str, Any],
    conflict_columns: Sequence[str],
) -> None:
    """
    Insert a row or, when it collides on ``conflict_columns``, update it in place.

    The write is a single statement, so concurrent deliveries of the same key
    resolve in the store rather than in application code. The caller commits.

    Raises:
        NotImplementedError: If the bound dialect has no ON CONFLICT support here
    """
    dialect = db.get_bind().dialect.name
    insert = _INSERT_BY_DIALECT.get(dialect)
    if insert is None:
        raise NotImplementedError(f"Upsert is not supported for dialect {dialect}")

    stmt = insert(model).values(**values)
    update_columns = {
        key: stmt.excluded[key] for key in values if key not in conflict_columns
    }
    update_columns["updated_at"] = utcnow()
    stmt = stmt.on_conflict_do_update(index_elements=list(conflict_columns), set_=update_columns)
    await db.execute(stmt)
