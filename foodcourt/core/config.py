"""
Application configuration loaded from the environment / .env file
"""

import os
from decimal import Decimal

from dotenv import load_dotenv


load_dotenv()


def _get_decimal(name: str, default: str) -> Decimal:
    return Decimal(os.getenv(name, default))


def _get_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _get_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


MAX_NOTES_LENGTH = 500
MAX_ITEMS_PER_ORDER = 50


class Config:
    """Configuration"""

    # Storage
    DATABASE_PATH: str = os.getenv("DATABASE_PATH", "foodcourt.db")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOGS_DIR: str = os.getenv("LOGS_DIR", "logs")

    # Error tracking
    SENTRY_DSN: str | None = os.getenv("SENTRY_DSN")
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Money
    PLATFORM_FEE_PERCENT: Decimal = _get_decimal("PLATFORM_FEE_PERCENT", "3")
    DEFAULT_COMMISSION_RATE: Decimal = _get_decimal("DEFAULT_COMMISSION_RATE", "10")
    CURRENCY_QUANTUM: Decimal = _get_decimal("CURRENCY_QUANTUM", "0.01")
    CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "₹")

    # Orders
    ESTIMATED_READY_MINUTES: int = _get_int("ESTIMATED_READY_MINUTES", 25)

    # Notification delivery
    DISPATCH_MAX_ATTEMPTS: int = _get_int("DISPATCH_MAX_ATTEMPTS", 3)
    DISPATCH_BASE_DELAY: float = _get_float("DISPATCH_BASE_DELAY", 0.5)
    DISPATCH_MAX_DELAY: float = _get_float("DISPATCH_MAX_DELAY", 30.0)
    OUTBOX_RETRY_INTERVAL: int = _get_int("OUTBOX_RETRY_INTERVAL", 5)  # minutes
    OUTBOX_BATCH_SIZE: int = _get_int("OUTBOX_BATCH_SIZE", 100)

    @classmethod
    def validate(cls) -> list[str]:
        """
        Configuration sanity check

        Returns:
            List of problems, empty if the configuration is usable
        """
        errors = []

        if not cls.DATABASE_PATH:
            errors.append("DATABASE_PATH is empty")

        if not Decimal("0") <= cls.PLATFORM_FEE_PERCENT <= Decimal("100"):
            errors.append("PLATFORM_FEE_PERCENT must be within 0..100")

        if not Decimal("0") <= cls.DEFAULT_COMMISSION_RATE <= Decimal("100"):
            errors.append("DEFAULT_COMMISSION_RATE must be within 0..100")

        if cls.PLATFORM_FEE_PERCENT + cls.DEFAULT_COMMISSION_RATE > Decimal("100"):
            errors.append("DEFAULT_COMMISSION_RATE + PLATFORM_FEE_PERCENT exceeds 100")

        if cls.CURRENCY_QUANTUM <= 0:
            errors.append("CURRENCY_QUANTUM must be positive")

        if cls.DISPATCH_MAX_ATTEMPTS < 1:
            errors.append("DISPATCH_MAX_ATTEMPTS must be at least 1")

        return errors
