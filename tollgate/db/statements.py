"""Dialect-aware statement helpers shared by repositories."""

from typing import Any, Optional, Sequence

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from tollgate.models._base import Base


async def insert_or_ignore(
    db: AsyncSession,
    model: type[Base],
    values: dict[str, Any],
    conflict_columns: Optional[Sequence[str]] = None,
) -> bool:
    """INSERT ... ON CONFLICT DO NOTHING.

    Returns True when the row was inserted and False when a unique
    constraint (on ``conflict_columns`` if given, any otherwise) already held
    a matching row. The surrounding transaction stays usable either way.
    """
    insert = sqlite_insert if db.get_bind().dialect.name == "sqlite" else pg_insert
    stmt = (
        insert(model)
        .values(**values)
        .on_conflict_do_nothing(index_elements=conflict_columns)
        .returning(model.id)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none() is not None
