"""
Database connection and schema
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import aiosqlite

from foodcourt.core.config import Config


if TYPE_CHECKING:
    from foodcourt.services.service_factory import ServiceFactory


logger = logging.getLogger(__name__)


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS orders (
        id TEXT PRIMARY KEY,
        order_number TEXT UNIQUE NOT NULL,
        user_id TEXT NOT NULL,
        restaurant_id TEXT NOT NULL,
        status TEXT NOT NULL,
        payment_status TEXT NOT NULL,
        total_amount TEXT NOT NULL,
        created_at TEXT,
        updated_at TEXT,
        sequence INTEGER NOT NULL,
        document TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS order_status_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        order_id TEXT NOT NULL,
        position INTEGER NOT NULL,
        status TEXT NOT NULL,
        changed_at TEXT NOT NULL,
        note TEXT,
        actor_role TEXT,
        actor_id TEXT,
        FOREIGN KEY (order_id) REFERENCES orders(id),
        UNIQUE (order_id, position)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notifications (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        template TEXT,
        related_order_id TEXT,
        is_read INTEGER DEFAULT 0,
        created_at TEXT NOT NULL,
        dedupe_key TEXT UNIQUE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS notification_outbox (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        template TEXT,
        related_order_id TEXT,
        dedupe_key TEXT,
        attempts INTEGER DEFAULT 0,
        last_error TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS vendors (
        id TEXT PRIMARY KEY,
        name TEXT,
        commission_rate TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        status_reason TEXT,
        created_at TEXT,
        updated_at TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS payout_requests (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        vendor_id TEXT NOT NULL,
        amount TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'pending',
        admin_notes TEXT,
        processed_by TEXT,
        created_at TEXT NOT NULL,
        processed_at TEXT
    )
    """,
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_orders_restaurant ON orders(restaurant_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_orders_user ON orders(user_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_orders_status ON orders(status)",
    "CREATE INDEX IF NOT EXISTS idx_history_order ON order_status_history(order_id)",
    "CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, is_read)",
    "CREATE INDEX IF NOT EXISTS idx_payouts_vendor ON payout_requests(vendor_id, status)",
]


class Database:
    """Owner of the aiosqlite connection"""

    def __init__(self, db_path: str | None = None):
        """
        Initialise

        Args:
            db_path: Database file path (":memory:" for tests)
        """
        self.db_path = db_path or Config.DATABASE_PATH
        self.connection: aiosqlite.Connection | None = None
        # One transaction at a time on the shared connection
        self.write_lock = asyncio.Lock()
        self._service_factory: "ServiceFactory | None" = None

    def _get_connection(self) -> aiosqlite.Connection:
        if self.connection is None:
            raise RuntimeError("Database is not connected")
        return self.connection

    def get_connection(self) -> aiosqlite.Connection:
        """Active connection for repositories and services"""
        return self._get_connection()

    async def connect(self):
        """Connect to the database"""
        connection = await aiosqlite.connect(self.db_path)
        connection.row_factory = aiosqlite.Row
        await connection.execute("PRAGMA journal_mode=WAL")
        await connection.execute("PRAGMA foreign_keys=ON")
        self.connection = connection
        logger.info("Connected to database: %s", self.db_path)

    async def disconnect(self):
        """Close the connection"""
        if self._service_factory is not None:
            await self._service_factory.close()
            self._service_factory = None

        connection = self.connection
        if connection:
            await connection.close()
            self.connection = None
            logger.info("Disconnected from database")

    @property
    def services(self) -> "ServiceFactory":
        """
        Service factory bound to this database

        Returns:
            ServiceFactory
        """
        if self._service_factory is None:
            from foodcourt.services.service_factory import ServiceFactory

            self._service_factory = ServiceFactory.for_database(self)
        return self._service_factory

    @asynccontextmanager
    async def transaction(self):
        """
        Transaction with BEGIN IMMEDIATE

        Commits on success and rolls back on any error.

        Usage:
            async with db.transaction() as connection:
                await connection.execute(...)
                await connection.execute(...)
        """
        connection = self._get_connection()

        async with self.write_lock:
            await connection.execute("BEGIN IMMEDIATE")
            try:
                yield connection
                await connection.commit()
                logger.debug("Transaction committed")
            except Exception as e:
                await connection.rollback()
                logger.error("Transaction rolled back: %s", e)
                raise

    async def init_db(self):
        """Create tables and indexes if they do not exist"""
        if not self.connection:
            await self.connect()

        connection = self._get_connection()

        for statement in SCHEMA:
            await connection.execute(statement)
        for statement in INDEXES:
            await connection.execute(statement)
        await connection.commit()

        logger.info("Database schema ready")
