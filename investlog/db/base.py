"""SQLAlchemy base metadata and declarative registry."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""

    pass


def utcnow() -> datetime:
    """Timezone-aware current UTC time used for row timestamps."""

    return datetime.now(timezone.utc)
