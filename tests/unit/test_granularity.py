"""Unit tests for window parsing and granularity resolution."""

from datetime import datetime, timedelta, timezone

import pytest

from pulseboard.core.exceptions import QueryValidationError
from pulseboard.services.granularity import Resolution, parse_timestamp, resolve_granularity, resolve_window

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


class TestResolveGranularity:
    @pytest.mark.parametrize(
        "days,expected",
        [(0.5, Resolution.minute), (1, Resolution.minute), (1.5, Resolution.hour),
         (30, Resolution.hour), (31, Resolution.day), (365, Resolution.day)],
    )
    def test_auto(self, days, expected):
        assert resolve_granularity("auto", days) == expected

    def test_explicit_passes_through(self):
        assert resolve_granularity("minute", 7) == Resolution.minute
        assert resolve_granularity("HOUR", 30) == Resolution.hour
        assert resolve_granularity("day", 1) == Resolution.day

    def test_hour_ceiling(self):
        with pytest.raises(QueryValidationError) as exc_info:
            resolve_granularity("hour", 45)
        assert exc_info.value.status == 400
        assert exc_info.value.message == "Hour-level data is only available for up to 30 days"

    def test_minute_ceiling(self):
        with pytest.raises(QueryValidationError, match="Minute-level data"):
            resolve_granularity("minute", 366)

    def test_auto_is_checked_against_ceilings(self):
        with pytest.raises(QueryValidationError, match="Day-level data"):
            resolve_granularity("auto", 400)

    def test_unknown_token(self):
        with pytest.raises(QueryValidationError, match="Invalid granularity"):
            resolve_granularity("week", 7)

    def test_periods_per_day(self):
        assert Resolution.minute.per_day == 1440
        assert Resolution.hour.per_day == 24
        assert Resolution.day.per_day == 1


class TestResolveWindow:
    def test_relative_days(self):
        window = resolve_window(days=7, now=NOW)
        assert window.is_relative
        assert window.end == NOW
        assert window.start == NOW - timedelta(days=7)
        assert window.days == 7.0

    def test_single_date_covers_whole_day(self):
        window = resolve_window(date="2024-01-15", now=NOW)
        assert not window.is_relative
        assert window.start == datetime(2024, 1, 15, tzinfo=timezone.utc)
        assert window.end == datetime(2024, 1, 15, 23, 59, 59, 999999, tzinfo=timezone.utc)
        assert window.days == 1.0

    def test_date_takes_precedence(self):
        window = resolve_window(date="2024-01-15", start="2024-01-01", end="2024-01-31", days=3, now=NOW)
        assert window.start.day == 15

    def test_explicit_range(self):
        window = resolve_window(start="2024-01-01", end="2024-01-03T12:00:00", now=NOW)
        assert not window.is_relative
        assert window.days == 2.5

    def test_start_only_runs_to_now(self):
        window = resolve_window(start="2024-03-09T12:00:00Z", now=NOW)
        assert window.end == NOW
        assert window.days == 1.0

    def test_end_only_spans_days_before_end(self):
        window = resolve_window(end="2024-02-01", days=2, now=NOW)
        assert window.start == datetime(2024, 1, 30, tzinfo=timezone.utc)

    def test_offset_is_converted_to_utc(self):
        assert parse_timestamp("2024-01-01T02:00:00+02:00", "start date") == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_end_before_start(self):
        with pytest.raises(QueryValidationError, match="End date must be after start date"):
            resolve_window(start="2024-01-05", end="2024-01-01", now=NOW)

    def test_invalid_timestamp(self):
        with pytest.raises(QueryValidationError, match="Invalid start date format"):
            resolve_window(start="yesterday", now=NOW)

    def test_invalid_date(self):
        with pytest.raises(QueryValidationError, match="Invalid date format"):
            resolve_window(date="15/01/2024", now=NOW)

    @pytest.mark.parametrize("days", [0, -1, float("nan")])
    def test_non_positive_days(self, days):
        with pytest.raises(QueryValidationError):
            resolve_window(days=days, now=NOW)
