"""Database access layer."""

from .base import Base
from .session import Database
from .upsert import upsert

__all__ = ["Base", "Database", "upsert"]
