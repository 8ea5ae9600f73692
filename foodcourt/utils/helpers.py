"""
Helper functions
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from foodcourt.core.config import Config


logger = logging.getLogger(__name__)


# Server timestamps are always UTC
SERVER_TZ = timezone.utc

_TIMESTAMP_STEP = timedelta(microseconds=1)


def get_now() -> datetime:
    """
    Current server time

    Returns:
        timezone-aware datetime in UTC
    """
    return datetime.now(SERVER_TZ)


def next_timestamp(previous: datetime | None) -> datetime:
    """
    Server timestamp strictly later than a previous one

    Wall clocks can repeat or step back; history timestamps must not.

    Args:
        previous: Last recorded timestamp (or None)

    Returns:
        max(now, previous + 1µs)
    """
    now = get_now()
    if previous is not None and now <= previous:
        return previous + _TIMESTAMP_STEP
    return now


def generate_order_id() -> str:
    """Opaque server-generated order identifier"""
    return f"ord_{secrets.token_hex(10)}"


def generate_order_number() -> str:
    """
    Human readable order number (SC + 6 digits)

    Not guaranteed unique on its own; the store rejects duplicates and
    the caller draws again.
    """
    return f"SC{secrets.randbelow(1_000_000):06d}"


def format_datetime(dt: datetime | None) -> str:
    """
    Format date and time

    Args:
        dt: datetime object

    Returns:
        "dd.mm.yyyy HH:MM" or "-"
    """
    if dt is None:
        return "-"
    return dt.strftime("%d.%m.%Y %H:%M")


def format_money(amount: Decimal | None) -> str:
    """
    Format an amount with the configured currency symbol

    Args:
        amount: Amount

    Returns:
        e.g. "₹1,234.50"
    """
    if amount is None:
        return "-"
    return f"{Config.CURRENCY_SYMBOL}{amount:,.2f}"


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    Truncate text to a maximum length

    Args:
        text: Source text
        max_length: Maximum length
        suffix: Suffix appended to truncated text

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix
