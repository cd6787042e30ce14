"""Tests for date bucketing helpers."""

from datetime import date, datetime, timezone

import pytest

from hotel_ledger.dates import (
    bucket,
    format_date,
    month_label,
    month_name,
    parse_date,
    shift_days,
    shift_month,
    today,
)


class TestParseDate:
    """Tests for parse_date."""

    def test_calendar_day_string(self):
        """Test that a plain day string is taken as written."""
        assert parse_date("2024-03-01") == date(2024, 3, 1)

    def test_calendar_day_ignores_timezone(self):
        """Test that a plain day is never shifted by the configured zone."""
        assert parse_date("2024-03-01", tz="Pacific/Kiritimati") == date(2024, 3, 1)

    def test_utc_timestamp_converted_to_zone(self):
        """Test that aware timestamps land on the day in the ledger zone."""
        assert parse_date("2024-03-01T23:30:00Z", tz="UTC") == date(2024, 3, 1)
        assert parse_date("2024-03-01T23:30:00Z", tz="Asia/Kolkata") == date(2024, 3, 2)

    def test_naive_timestamp_kept(self):
        """Test that a naive timestamp is assumed to be local already."""
        assert parse_date("2024-03-01T23:30:00", tz="Asia/Kolkata") == date(2024, 3, 1)

    def test_date_and_datetime_objects(self):
        """Test that date objects pass through and datetimes are localized."""
        assert parse_date(date(2024, 1, 5)) == date(2024, 1, 5)
        moment = datetime(2024, 1, 5, 22, 0, tzinfo=timezone.utc)
        assert parse_date(moment, tz="Asia/Tokyo") == date(2024, 1, 6)

    @pytest.mark.parametrize("value", [None, "", "not-a-date", "2024-13-01", 12345, "2024/03/01"])
    def test_bad_input_returns_none(self, value):
        """Test that unusable input yields None instead of raising."""
        assert parse_date(value) is None

    def test_unknown_timezone_falls_back_to_utc(self):
        """Test that a bad zone name does not break parsing."""
        assert parse_date("2024-03-01T23:30:00Z", tz="Not/AZone") == date(2024, 3, 1)


class TestBucket:
    """Tests for bucket and month helpers."""

    def test_bucket_uses_zero_indexed_month(self):
        """Test that January is month 0."""
        parts = bucket("2024-01-31")

        assert parts is not None
        assert (parts.day, parts.month, parts.year) == (31, 0, 2024)
        assert parts.month_key == (2024, 0)
        assert parts.day_key == "2024-01-31"

    def test_bucket_of_bad_date(self):
        """Test that a malformed date has no bucket."""
        assert bucket("garbage") is None

    def test_month_labels(self):
        """Test month names and labels for valid and invalid indexes."""
        assert month_name(0) == "January"
        assert month_label(11) == "Dec"
        assert month_label(12) == ""
        assert month_label(-1) == ""
        assert month_name("3") == ""

    def test_format_date(self):
        """Test the report display format."""
        assert format_date("2024-03-05") == "05 Mar 2024"
        assert format_date(None) == ""

    def test_shift_month_wraps_years(self):
        """Test month arithmetic across year boundaries."""
        assert shift_month(2024, 0, -1) == (2023, 11)
        assert shift_month(2023, 11, 1) == (2024, 0)
        assert shift_month(2024, 2, -14) == (2023, 0)

    def test_shift_days(self):
        """Test day arithmetic across month ends."""
        assert shift_days("2024-03-01", -1) == "2024-02-29"
        assert shift_days("bad", 1) == ""

    def test_today_is_iso_day(self):
        """Test that today() returns a parseable day."""
        assert parse_date(today()) is not None
