"""Database bootstrap utilities for the ordered collections service.

Exposes engine construction and the migrations runner that applies SQL files
from the local migrations/ directory. The DB layer does not leak ORM models
into route handlers.
"""

from rankd.db.base import get_engine, reset_engine
from rankd.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "reset_engine",
    "apply_migrations",
]
