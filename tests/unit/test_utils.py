"""
Tests for helpers, retry and configuration
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from foodcourt.core.config import Config
from foodcourt.repositories.exceptions import StoreUnavailableError
from foodcourt.utils import helpers
from foodcourt.utils.helpers import (
    format_datetime,
    format_money,
    generate_order_id,
    generate_order_number,
    next_timestamp,
    truncate_text,
)
from foodcourt.utils.logging_setup import setup_logging
from foodcourt.utils.retry import RetryExhaustedError, compute_backoff, retry_async


class TestTimestamps:
    def test_now_is_utc(self):
        assert helpers.get_now().tzinfo == timezone.utc

    def test_next_timestamp_without_previous(self):
        assert next_timestamp(None).tzinfo == timezone.utc

    def test_next_timestamp_after_clock_step_back(self, monkeypatch):
        """A clock that goes backwards still yields a strictly later timestamp"""
        previous = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        monkeypatch.setattr(helpers, "get_now", lambda: previous - timedelta(seconds=5))

        assert next_timestamp(previous) == previous + timedelta(microseconds=1)

    def test_next_timestamp_with_repeated_clock(self, monkeypatch):
        previous = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        monkeypatch.setattr(helpers, "get_now", lambda: previous)

        assert next_timestamp(previous) > previous


class TestIdentifiers:
    def test_order_number_format(self):
        number = generate_order_number()
        assert len(number) == 8
        assert number.startswith("SC")
        assert number[2:].isdigit()

    def test_order_ids_are_unique(self):
        assert len({generate_order_id() for _ in range(100)}) == 100


class TestFormatting:
    def test_format_money(self, monkeypatch):
        monkeypatch.setattr(Config, "CURRENCY_SYMBOL", "₹")
        assert format_money(Decimal("1234.5")) == "₹1,234.50"
        assert format_money(None) == "-"

    def test_format_datetime(self):
        assert format_datetime(datetime(2026, 3, 7, 9, 5)) == "07.03.2026 09:05"
        assert format_datetime(None) == "-"

    def test_truncate_text(self):
        assert truncate_text("short", 10) == "short"
        assert truncate_text("a" * 20, 10) == "aaaaaaa..."


class TestRetry:
    """Tests for retry_async"""

    def test_backoff_grows_and_is_capped(self):
        assert compute_backoff(1, 0.5, 30) == 0.5
        assert compute_backoff(3, 0.5, 30) == 2.0
        assert compute_backoff(20, 0.5, 30) == 30

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        calls = []

        @retry_async(max_attempts=3, base_delay=0, max_delay=0)
        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise StoreUnavailableError("write", ConnectionError("down"))
            return "ok"

        assert await flaky() == "ok"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_exhausted(self):
        @retry_async(max_attempts=2, base_delay=0, max_delay=0)
        async def always_down():
            raise ConnectionError("down")

        with pytest.raises(RetryExhaustedError) as exc_info:
            await always_down()
        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_exception, ConnectionError)

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates(self):
        calls = []

        @retry_async(max_attempts=5, base_delay=0, max_delay=0)
        async def broken():
            calls.append(1)
            raise ValueError("bad template")

        with pytest.raises(ValueError):
            await broken()
        assert len(calls) == 1


class TestConfig:
    """Tests for Config.validate"""

    def test_defaults_are_valid(self, monkeypatch):
        monkeypatch.setattr(Config, "DATABASE_PATH", "foodcourt.db")
        monkeypatch.setattr(Config, "PLATFORM_FEE_PERCENT", Decimal("3"))
        monkeypatch.setattr(Config, "DEFAULT_COMMISSION_RATE", Decimal("10"))
        monkeypatch.setattr(Config, "CURRENCY_QUANTUM", Decimal("0.01"))
        monkeypatch.setattr(Config, "DISPATCH_MAX_ATTEMPTS", 3)

        assert Config.validate() == []

    def test_rates_over_hundred(self, monkeypatch):
        monkeypatch.setattr(Config, "PLATFORM_FEE_PERCENT", Decimal("30"))
        monkeypatch.setattr(Config, "DEFAULT_COMMISSION_RATE", Decimal("80"))

        errors = Config.validate()
        assert any("exceeds 100" in e for e in errors)

    def test_empty_database_path(self, monkeypatch):
        monkeypatch.setattr(Config, "DATABASE_PATH", "")
        assert "DATABASE_PATH is empty" in Config.validate()

    def test_zero_dispatch_attempts(self, monkeypatch):
        monkeypatch.setattr(Config, "DISPATCH_MAX_ATTEMPTS", 0)
        assert any("DISPATCH_MAX_ATTEMPTS" in e for e in Config.validate())


class TestLoggingSetup:
    def test_file_and_console_handlers(self, tmp_path):
        level = setup_logging("debug", str(tmp_path))

        assert level == logging.DEBUG
        assert (tmp_path / "foodcourt.log").exists()
        assert logging.getLogger("apscheduler").level == logging.INFO

        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
