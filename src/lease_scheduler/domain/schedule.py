"""Schedule resolution — one-shot timestamps and five-field cron expressions.

``next_run`` is a pure function of the schedule and a reference instant.
It builds a throwaway ``croniter`` iterator per call, so computing a run
time never leaves timers or iterator state behind.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from croniter import CroniterError, croniter
from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import InvalidScheduleError

CRON_FIELD_COUNT = 5

# Reference instant for checking that a cron expression can ever fire.
_CRON_CHECK_START = datetime(2000, 1, 1, tzinfo=timezone.utc)

_timestamp_adapter: TypeAdapter[datetime] = TypeAdapter(datetime)


class ScheduleKind(str, Enum):
    """How a schedule produces run times."""

    ONE_SHOT = "one_shot"
    RECURRING = "recurring"


class Schedule(BaseModel):
    """Parsed, normalized schedule. Immutable and compared by value."""

    model_config = ConfigDict(frozen=True)

    kind: ScheduleKind
    normalized: str

    @property
    def run_at(self) -> datetime:
        """Fixed run time of a one-shot schedule."""
        if self.kind is not ScheduleKind.ONE_SHOT:
            raise ValueError("Recurring schedules have no fixed run time")
        return datetime.fromisoformat(self.normalized)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _cron_iter(expression: str, start: datetime) -> croniter:
    # Every field must match; day-of-month and day-of-week are not OR-ed.
    return croniter(expression, start, day_or=False)


def _parse_cron(raw: str) -> str | None:
    fields = raw.split()
    if len(fields) != CRON_FIELD_COUNT:
        return None
    expression = " ".join(fields)
    if not croniter.is_valid(expression):
        return None
    return expression


def _parse_timestamp(raw: str) -> datetime | None:
    try:
        return as_utc(_timestamp_adapter.validate_python(raw))
    except PydanticValidationError:
        return None


def parse_schedule(raw: object) -> Schedule:
    """
    Parse a raw schedule into a typed :class:`Schedule`.

    Cron expressions take precedence; anything else must be an absolute
    timestamp (ISO-8601 or unix seconds). Naive timestamps are UTC.

    Raises:
        InvalidScheduleError: If *raw* is neither.
    """
    if isinstance(raw, datetime):
        return Schedule(kind=ScheduleKind.ONE_SHOT, normalized=as_utc(raw).isoformat())
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidScheduleError(raw, "schedule is required")

    text = raw.strip()
    expression = _parse_cron(text)
    if expression is not None:
        try:
            _cron_iter(expression, _CRON_CHECK_START).get_next(datetime)
        except CroniterError:
            raise InvalidScheduleError(
                raw, "cron expression never matches a date"
            ) from None
        return Schedule(kind=ScheduleKind.RECURRING, normalized=expression)

    timestamp = _parse_timestamp(text)
    if timestamp is not None:
        return Schedule(kind=ScheduleKind.ONE_SHOT, normalized=timestamp.isoformat())

    raise InvalidScheduleError(
        raw, "expected a five-field cron expression or an absolute timestamp"
    )


def next_run(schedule: Schedule, now: datetime) -> datetime | None:
    """
    Compute the next eligible run time of *schedule* relative to *now*.

    Recurring schedules yield the smallest matching minute strictly after
    *now* (evaluated in UTC). One-shot schedules yield their timestamp
    verbatim, even when it is already in the past.
    """
    if schedule.kind is ScheduleKind.ONE_SHOT:
        return schedule.run_at
    return _cron_iter(schedule.normalized, as_utc(now)).get_next(datetime)


__all__ = [
    "Schedule",
    "ScheduleKind",
    "as_utc",
    "next_run",
    "parse_schedule",
]
