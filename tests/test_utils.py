"""Unit tests for utility functions."""

import random
from datetime import UTC, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from launchhub.utils import (
    format_iso,
    parse_datetime,
    shift_days,
    slugify,
    start_of_day,
    username_from_email,
    utc_now,
    with_random_suffix,
)

NEW_YORK = ZoneInfo("America/New_York")


class TestDatetimeHelpers:
    def test_parse_datetime_string_with_z(self):
        parsed = parse_datetime("2024-01-15T10:30:00Z")
        assert parsed == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)

    def test_parse_datetime_converts_offsets_to_utc(self):
        parsed = parse_datetime("2024-01-15T10:30:00+02:00")
        assert parsed == datetime(2024, 1, 15, 8, 30, tzinfo=UTC)
        assert parsed.utcoffset() == timedelta(0)

    def test_parse_datetime_naive_is_utc(self):
        assert parse_datetime(datetime(2024, 1, 15, 10, 30)).tzinfo == UTC
        assert parse_datetime("2024-01-15T10:30:00") == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)

    def test_parse_datetime_aware_datetime(self):
        eastern = datetime(2024, 1, 15, 5, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert parse_datetime(eastern) == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)

    def test_parse_datetime_none(self):
        assert parse_datetime(None) is None

    def test_parse_datetime_invalid(self):
        with pytest.raises(ValueError):
            parse_datetime("not a date")

    def test_format_iso(self):
        assert format_iso(datetime(2024, 1, 15, 10, 30, tzinfo=UTC)) == "2024-01-15T10:30:00Z"
        assert format_iso(None) is None

    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo == UTC


class TestDayBoundaries:
    def test_start_of_day_utc(self):
        moment = datetime(2024, 3, 5, 17, 45, tzinfo=UTC)
        assert start_of_day(moment) == datetime(2024, 3, 5, tzinfo=UTC)

    def test_start_of_day_in_other_zone(self):
        # 02:00 UTC on the 5th is still the 4th in New York (UTC-5)
        moment = datetime(2024, 3, 5, 2, 0, tzinfo=UTC)
        assert start_of_day(moment, NEW_YORK) == datetime(2024, 3, 4, 5, 0, tzinfo=UTC)

    def test_shift_days_forward_and_back(self):
        day = datetime(2024, 3, 5, tzinfo=UTC)
        assert shift_days(day, 1) == datetime(2024, 3, 6, tzinfo=UTC)
        assert shift_days(day, -1) == datetime(2024, 3, 4, tzinfo=UTC)

    def test_shift_days_across_dst_start(self):
        # US clocks spring forward on 2024-03-10, so that day lasts 23 hours
        day = start_of_day(datetime(2024, 3, 10, 12, 0, tzinfo=UTC), NEW_YORK)
        next_day = shift_days(day, 1, NEW_YORK)

        assert day == datetime(2024, 3, 10, 5, 0, tzinfo=UTC)
        assert next_day == datetime(2024, 3, 11, 4, 0, tzinfo=UTC)
        assert next_day - day == timedelta(hours=23)


class TestTextHelpers:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("Hello, World! 2.0", "hello-world-20"),
            ("  Café   Déjà Vu ", "cafe-deja-vu"),
            ("already-a-slug", "already-a-slug"),
            ("Multiple   Spaces", "multiple-spaces"),
        ],
    )
    def test_slugify(self, value, expected):
        assert slugify(value) == expected

    def test_username_from_email(self):
        assert username_from_email("Jane.Doe+hunt@example.com") == "janedoehunt"

    def test_with_random_suffix(self):
        rng = random.Random(42)
        result = with_random_suffix("jane", rng)

        assert result.startswith("jane")
        assert 0 <= int(result.removeprefix("jane")) <= 999
