"""Tests for the booking field validators."""

import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from vetchat.booking.validators import parse_future_datetime, validate_name, validate_phone

UTC = timezone.utc
NOW = datetime(2024, 1, 1, 9, 0, tzinfo=UTC)


class TestValidateName:
    @pytest.mark.parametrize("value", ["Jo", "John", "John Doe", "  Al  "])
    def test_accepts_two_or_more_chars(self, value):
        assert validate_name(value)

    @pytest.mark.parametrize("value", ["", "J", "   ", " J ", None])
    def test_rejects_short(self, value):
        assert not validate_name(value)


class TestValidatePhone:
    @pytest.mark.parametrize("value", [
        "555-123-4567",
        "5551234567",
        "+1-555-123-4567",
        "(555) 123-4567",
        "555.123.4567",
        "+441234567",
    ])
    def test_accepts_common_formats(self, value):
        assert validate_phone(value)

    @pytest.mark.parametrize("value", [
        "123",
        "abcdefg",
        "12-34",
        "1234567890123456",  # 16 digits
        "555-123-4567 ext 2",
        "",
        None,
    ])
    def test_rejects_invalid(self, value):
        assert not validate_phone(value)

    def test_plus_only_at_start(self):
        assert not validate_phone("555+1234567")


class TestParseFutureDatetime:
    def test_iso_in_future(self):
        result = parse_future_datetime("2099-01-01 10:00", NOW)
        assert result == datetime(2099, 1, 1, 10, 0, tzinfo=UTC)

    def test_past_date_returns_none(self):
        assert parse_future_datetime("2020-01-01", NOW) is None

    def test_now_itself_is_not_future(self):
        assert parse_future_datetime(NOW.isoformat(), NOW) is None

    def test_natural_month_day(self):
        result = parse_future_datetime("January 15th at 2pm", NOW)
        assert result == datetime(2024, 1, 15, 14, 0, tzinfo=UTC)

    def test_tomorrow_with_time(self):
        result = parse_future_datetime("tomorrow at 10am", NOW)
        assert result == datetime(2024, 1, 2, 10, 0, tzinfo=UTC)

    def test_tomorrow_with_minutes_pm(self):
        result = parse_future_datetime("Tomorrow 3:30 pm", NOW)
        assert result == datetime(2024, 1, 2, 15, 30, tzinfo=UTC)

    def test_tomorrow_without_time_keeps_clock(self):
        result = parse_future_datetime("tomorrow please", NOW)
        assert result == NOW + timedelta(days=1)

    def test_next_week(self):
        result = parse_future_datetime("next week at 9am", NOW)
        assert result == datetime(2024, 1, 8, 9, 0, tzinfo=UTC)

    def test_twelve_am_is_midnight(self):
        result = parse_future_datetime("tomorrow 12am", NOW)
        assert result == datetime(2024, 1, 2, 0, 0, tzinfo=UTC)

    def test_twelve_pm_is_noon(self):
        result = parse_future_datetime("tomorrow 12pm", NOW)
        assert result == datetime(2024, 1, 2, 12, 0, tzinfo=UTC)

    @pytest.mark.parametrize("text", ["5", "12", "march", "friday", "March at 2pm"])
    def test_fragments_without_day_and_month_rejected(self, text):
        assert parse_future_datetime(text, NOW) is None

    def test_month_name_and_day_accepted(self):
        result = parse_future_datetime("March 15 at 3pm", NOW)
        assert result == datetime(2024, 3, 15, 15, 0, tzinfo=UTC)

    def test_unparseable_returns_none(self):
        assert parse_future_datetime("banana pancakes", NOW) is None

    def test_blank_returns_none(self):
        assert parse_future_datetime("   ", NOW) is None

    def test_out_of_range_hour_returns_none(self):
        assert parse_future_datetime("tomorrow at 45", NOW) is None

    def test_explicit_offset_is_kept(self):
        result = parse_future_datetime("2099-06-01T08:00:00+02:00", NOW)
        assert result.utcoffset() == timedelta(hours=2)

    def test_default_now_is_used(self):
        future = (datetime.now(UTC) + timedelta(days=3)).isoformat()
        assert parse_future_datetime(future) is not None
