"""Dialect-aware ``INSERT ... ON CONFLICT DO UPDATE`` helper."""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession


def upsert(
    session: AsyncSession,
    model: type,
    values: dict[str, Any] | Sequence[dict[str, Any]],
    *,
    index_elements: Iterable[str],
    update_fields: Iterable[str],
):
    """Build an upsert statement for the session's dialect."""

    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:  # pragma: no cover - only PostgreSQL and SQLite are deployed
        raise NotImplementedError(f"Upsert is not supported for dialect {dialect!r}")
    stmt = insert(model).values(values)
    return stmt.on_conflict_do_update(
        index_elements=list(index_elements),
        set_={name: getattr(stmt.excluded, name) for name in update_fields},
    )


__all__ = ["upsert"]
