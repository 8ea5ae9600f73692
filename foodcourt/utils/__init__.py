"""Utilities and helper functions"""
from foodcourt.utils.helpers import (
    format_datetime,
    format_money,
    generate_order_id,
    generate_order_number,
    get_now,
    next_timestamp,
    truncate_text,
)
from foodcourt.utils.retry import RetryExhaustedError, compute_backoff, retry_async


__all__ = [
    "RetryExhaustedError",
    "compute_backoff",
    "format_datetime",
    "format_money",
    "generate_order_id",
    "generate_order_number",
    "get_now",
    "next_timestamp",
    "retry_async",
    "truncate_text",
]
