"""
Database package: aiosqlite connection owner and data models
"""

from foodcourt.database.db import Database


def get_database(db_path: str | None = None) -> Database:
    """
    Factory for database instances

    Use this instead of calling Database() directly in entry points.
    """
    return Database(db_path)


__all__ = ["Database", "get_database"]
