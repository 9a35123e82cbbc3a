"""Tests for schedule parsing and next-run computation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from lease_scheduler import (
    InvalidScheduleError,
    ScheduleKind,
    ValidationError,
    next_run,
    parse_schedule,
)

UTC = timezone.utc


# ============================================================================
# Tests: parse_schedule
# ============================================================================


class TestParseSchedule:
    """Cron expressions, timestamps and rejects."""

    def test_five_field_cron_is_recurring(self) -> None:
        schedule = parse_schedule("*/5 * * * *")

        assert schedule.kind is ScheduleKind.RECURRING
        assert schedule.normalized == "*/5 * * * *"

    def test_cron_whitespace_is_collapsed(self) -> None:
        schedule = parse_schedule("  0   3 * *   1-5 ")

        assert schedule.kind is ScheduleKind.RECURRING
        assert schedule.normalized == "0 3 * * 1-5"

    def test_iso_timestamp_is_one_shot(self) -> None:
        schedule = parse_schedule("2026-03-01T09:30:00Z")

        assert schedule.kind is ScheduleKind.ONE_SHOT
        assert schedule.run_at == datetime(2026, 3, 1, 9, 30, tzinfo=UTC)

    def test_naive_timestamp_is_treated_as_utc(self) -> None:
        schedule = parse_schedule("2026-03-01T09:30:00")

        assert schedule.run_at == datetime(2026, 3, 1, 9, 30, tzinfo=UTC)

    def test_offset_timestamp_is_normalized_to_utc(self) -> None:
        schedule = parse_schedule("2026-03-01T09:30:00+02:00")

        assert schedule.run_at == datetime(2026, 3, 1, 7, 30, tzinfo=UTC)
        assert schedule.normalized.endswith("+00:00")

    def test_unix_seconds_string_is_one_shot(self) -> None:
        schedule = parse_schedule("1767225600")

        assert schedule.kind is ScheduleKind.ONE_SHOT
        assert schedule.run_at == datetime(2026, 1, 1, tzinfo=UTC)

    def test_datetime_instance_is_accepted(self) -> None:
        when = datetime(2026, 5, 4, 3, 2, 1, tzinfo=UTC)

        assert parse_schedule(when).run_at == when

    @pytest.mark.parametrize(
        "raw",
        [
            "not-a-schedule",
            "61 * * * *",
            "* * * *",
            "a b c d e",
            "2026-13-45T99:00",
            "0 0 31 2 *",
            "0 0 30 2 *",
        ],
    )
    def test_garbage_is_rejected(self, raw: str) -> None:
        with pytest.raises(InvalidScheduleError) as exc_info:
            parse_schedule(raw)

        assert "schedule" in exc_info.value.errors
        assert exc_info.value.raw == raw

    @pytest.mark.parametrize("raw", [None, "", "   ", 42])
    def test_missing_schedule_is_rejected(self, raw: object) -> None:
        with pytest.raises(InvalidScheduleError, match="schedule is required"):
            parse_schedule(raw)

    def test_invalid_schedule_is_a_validation_error(self) -> None:
        with pytest.raises(ValidationError):
            parse_schedule("nope")

    def test_schedule_is_value_equal_and_frozen(self) -> None:
        a = parse_schedule("0 * * * *")
        b = parse_schedule("0  *  * * *")

        assert a == b
        with pytest.raises(Exception):  # noqa: B017
            a.normalized = "1 * * * *"  # type: ignore[misc]

    def test_recurring_schedule_has_no_run_at(self) -> None:
        with pytest.raises(ValueError):
            _ = parse_schedule("0 * * * *").run_at


# ============================================================================
# Tests: next_run
# ============================================================================


class TestNextRun:
    """Next eligible run time relative to a reference instant."""

    def test_cron_next_match_after_now(self) -> None:
        now = datetime(2026, 1, 1, 12, 2, 30, tzinfo=UTC)

        result = next_run(parse_schedule("*/5 * * * *"), now)

        assert result == datetime(2026, 1, 1, 12, 5, tzinfo=UTC)

    def test_cron_is_strictly_after_now(self) -> None:
        now = datetime(2026, 1, 1, 12, 2, 30, tzinfo=UTC)

        first = next_run(parse_schedule("*/5 * * * *"), now)
        assert first is not None
        second = next_run(parse_schedule("*/5 * * * *"), first)

        assert second == first + timedelta(minutes=5)

    def test_cron_rolls_over_day(self) -> None:
        now = datetime(2026, 1, 1, 23, 59, 30, tzinfo=UTC)

        result = next_run(parse_schedule("30 2 * * *"), now)

        assert result == datetime(2026, 1, 2, 2, 30, tzinfo=UTC)

    def test_cron_naive_now_is_utc(self) -> None:
        result = next_run(parse_schedule("0 * * * *"), datetime(2026, 1, 1, 10, 15))

        assert result == datetime(2026, 1, 1, 11, 0, tzinfo=UTC)

    def test_one_shot_returns_timestamp_even_if_past(self) -> None:
        schedule = parse_schedule("2020-01-01T00:00:00Z")
        now = datetime(2026, 1, 1, tzinfo=UTC)

        assert next_run(schedule, now) == datetime(2020, 1, 1, tzinfo=UTC)

    def test_is_pure(self) -> None:
        schedule = parse_schedule("*/10 * * * *")
        now = datetime(2026, 1, 1, 12, 1, tzinfo=UTC)

        assert next_run(schedule, now) == next_run(schedule, now)

    @pytest.mark.parametrize("offset_seconds", [0, 1, 59, 60, 299, 300, 301, 3599])
    def test_every_five_minutes_is_within_next_window(
        self, offset_seconds: int
    ) -> None:
        now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC) + timedelta(
            seconds=offset_seconds, microseconds=250
        )

        result = next_run(parse_schedule("*/5 * * * *"), now)

        assert result is not None
        assert now < result <= now + timedelta(minutes=5)

    def test_cron_day_of_month_and_weekday_must_both_match(self) -> None:
        """Friday the 13th: both day fields constrain the match."""
        now = datetime(2026, 1, 1, tzinfo=UTC)

        result = next_run(parse_schedule("0 0 13 * 5"), now)

        assert result == datetime(2026, 2, 13, tzinfo=UTC)
        assert result.weekday() == 4

    def test_cron_minute_list(self) -> None:
        schedule = parse_schedule("0,30 * * * *")
        now = datetime(2026, 1, 1, 12, 10, tzinfo=UTC)

        first = next_run(schedule, now)
        assert first == datetime(2026, 1, 1, 12, 30, tzinfo=UTC)
        assert next_run(schedule, first) == datetime(2026, 1, 1, 13, 0, tzinfo=UTC)
