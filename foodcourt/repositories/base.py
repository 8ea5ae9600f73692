"""
Base repository for SQLite access
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Generic, TypeVar

import aiosqlite

from foodcourt.repositories.exceptions import StoreUnavailableError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base class for all repositories
    Shared helpers for working with the database
    """

    def __init__(
        self, db_connection: aiosqlite.Connection, write_lock: asyncio.Lock | None = None
    ):
        """
        Initialise the repository

        Args:
            db_connection: Database connection
            write_lock: Lock shared by every repository on the same connection
        """
        self.db = db_connection
        self.write_lock = write_lock or asyncio.Lock()

    @asynccontextmanager
    async def transaction(self):
        """
        Transaction context manager

        The caller must hold write_lock: one aiosqlite connection carries a
        single transaction at a time.

        Yields:
            aiosqlite.Connection: Database connection
        """
        if not self.db:
            raise RuntimeError("Database is not connected")

        await self.db.execute("BEGIN IMMEDIATE")
        try:
            yield self.db
            await self.db.commit()
            logger.debug("Transaction committed")
        except Exception as e:
            await self.db.rollback()
            logger.error("Transaction rolled back: %s", e)
            raise

    async def _execute(self, query: str, params: tuple | dict | None = None) -> aiosqlite.Cursor:
        """
        Execute a SQL statement

        Args:
            query: SQL statement
            params: Statement parameters

        Returns:
            Cursor with the result
        """
        if params:
            return await self.db.execute(query, params)
        return await self.db.execute(query)

    async def _fetch_one(
        self, query: str, params: tuple | dict | None = None
    ) -> aiosqlite.Row | None:
        """
        Fetch a single row

        Args:
            query: SQL statement
            params: Statement parameters

        Returns:
            Row or None
        """
        cursor = await self._execute(query, params)
        return await cursor.fetchone()

    async def _fetch_all(
        self, query: str, params: tuple | dict | None = None
    ) -> list[aiosqlite.Row]:
        """
        Fetch every row

        Args:
            query: SQL statement
            params: Statement parameters

        Returns:
            List of rows
        """
        cursor = await self._execute(query, params)
        return list(await cursor.fetchall())

    async def _execute_commit(self, query: str, params: tuple | dict | None = None) -> int:
        """
        Execute a statement and commit (INSERT, UPDATE, DELETE)

        Args:
            query: SQL statement
            params: Statement parameters

        Returns:
            Last inserted row id or number of changed rows
        """
        async with self.write_lock:
            cursor = await self._execute(query, params)
            await self.db.commit()
        return cursor.lastrowid if cursor.lastrowid else cursor.rowcount

    async def _execute_update(self, query: str, params: tuple | dict | None = None) -> int:
        """
        Execute an UPDATE / DELETE and commit

        Returns:
            Number of changed rows
        """
        async with self.write_lock:
            cursor = await self._execute(query, params)
            await self.db.commit()
        return cursor.rowcount

    @staticmethod
    def _unavailable(operation: str, error: Exception) -> StoreUnavailableError:
        """Wrap a driver error"""
        logger.error("Storage error during %s: %s", operation, error)
        return StoreUnavailableError(operation, error)
