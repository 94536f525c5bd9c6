"""Cron expression parsing and eager validation.

Manifesto:
    A job whose expression does not parse must be rejected before the
    engine or the store is touched, otherwise a half-registered job is left
    behind.  Parsing is therefore a pure function that either returns a
    ready-to-install trigger or raises ``InvalidScheduleError``.

Two dialects are accepted:

* **Quartz** (6 or 7 fields): ``sec min hour day-of-month month day-of-week [year]``
  with ``?`` as "no specific value", day-of-week ``1=SUN … 7=SAT``,
  ``L`` (last day of month), ``n#k`` (k-th weekday n) and ``nL`` (last
  weekday n of the month).
* **crontab** (5 fields): ``min hour day-of-month month day-of-week`` with
  day-of-week ``0/7=SUN … 6=SAT``; seconds are fixed at 0.

Both are translated into APScheduler ``CronTrigger`` fields, whose
day-of-week numbering starts at Monday, so numeric weekdays are always
rewritten as names.

Unsupported Quartz forms (``W``, ``LW``, ``L-n``, stepped day-of-week, and
restricting day-of-month and day-of-week together) raise
``InvalidScheduleError`` instead of silently changing meaning.

Tags:
    jobspine, scheduling, cron, quartz, crontab, apscheduler, validation

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from apscheduler.triggers.cron import CronTrigger

from jobspine.core.errors import InvalidScheduleError

DAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

QUARTZ_WEEKDAYS = {"1": "sun", "2": "mon", "3": "tue", "4": "wed", "5": "thu", "6": "fri", "7": "sat"}
CRONTAB_WEEKDAYS = {"0": "sun", "1": "mon", "2": "tue", "3": "wed", "4": "thu", "5": "fri", "6": "sat", "7": "sun"}

_ORDINALS = {"1": "1st", "2": "2nd", "3": "3rd", "4": "4th", "5": "5th"}
_ANY = ("*", "?")


@dataclass(frozen=True)
class CronFields:
    """An expression translated into APScheduler ``CronTrigger`` keyword arguments."""

    second: str
    minute: str
    hour: str
    day: str
    month: str
    day_of_week: str
    year: str | None = None

    def as_kwargs(self) -> dict[str, str]:
        kwargs = {
            "second": self.second,
            "minute": self.minute,
            "hour": self.hour,
            "day": self.day,
            "month": self.month,
            "day_of_week": self.day_of_week,
        }
        if self.year is not None:
            kwargs["year"] = self.year
        return kwargs


def parse_cron(expression: str) -> CronFields:
    """Translate a Quartz or crontab expression into ``CronFields``.

    Raises:
        InvalidScheduleError: Wrong field count or an unsupported construct.
    """
    if not expression or not expression.strip():
        raise InvalidScheduleError(expression or "", "expression is empty")

    parts = expression.split()
    if len(parts) == 5:
        minute, hour, dom, month, dow = parts
        second, year = "0", None
        weekdays = CRONTAB_WEEKDAYS
    elif len(parts) in (6, 7):
        second, minute, hour, dom, month, dow = parts[:6]
        year = parts[6] if len(parts) == 7 else None
        weekdays = QUARTZ_WEEKDAYS
    else:
        raise InvalidScheduleError(expression, f"expected 5, 6 or 7 fields, got {len(parts)}")

    if dom not in _ANY and dow not in _ANY:
        raise InvalidScheduleError(
            expression, "restricting both day-of-month and day-of-week is not supported"
        )

    day = _translate_day_of_month(expression, dom)
    day_of_week, day_override = _translate_day_of_week(expression, dow, weekdays)
    if day_override is not None:
        day = day_override

    return CronFields(
        second=second,
        minute=minute,
        hour=hour,
        day=day,
        month=month.lower(),
        day_of_week=day_of_week,
        year=None if year in (None, "*", "?") else year,
    )


def build_trigger(expression: str, timezone: str = "UTC") -> CronTrigger:
    """Parse *expression* and return a ``CronTrigger`` that fires at least once.

    Raises:
        InvalidScheduleError: The expression does not parse, names an unknown
            timezone, or can never fire.
    """
    fields = parse_cron(expression)
    try:
        trigger = CronTrigger(timezone=timezone, **fields.as_kwargs())
    except (ValueError, TypeError, KeyError) as e:
        raise InvalidScheduleError(expression, str(e), cause=e) from e

    if trigger.get_next_fire_time(None, datetime.now(UTC)) is None:
        raise InvalidScheduleError(expression, "schedule never fires")
    return trigger


def validate_cron(expression: str, timezone: str = "UTC") -> None:
    """Raise ``InvalidScheduleError`` unless *expression* is usable."""
    build_trigger(expression, timezone)


def next_fire_times(
    expression: str,
    count: int = 5,
    *,
    timezone: str = "UTC",
    start: datetime | None = None,
) -> list[datetime]:
    """Return up to *count* upcoming fire times of *expression* after *start*."""
    trigger = build_trigger(expression, timezone)
    now = start or datetime.now(UTC)
    times: list[datetime] = []
    previous = None
    while len(times) < count:
        fire = trigger.get_next_fire_time(previous, now)
        if fire is None:
            break
        times.append(fire)
        previous = fire
        now = fire + timedelta(seconds=1)
    return times


# ---------------------------------------------------------------------------
# Field translation
# ---------------------------------------------------------------------------


def _translate_day_of_month(expression: str, field: str) -> str:
    if field in _ANY:
        return "*"
    upper = field.upper()
    if upper == "L":
        return "last"
    if "W" in upper or upper.startswith("L"):
        raise InvalidScheduleError(expression, f"unsupported day-of-month {field!r}")
    return field.lower()


def _translate_day_of_week(
    expression: str, field: str, weekdays: dict[str, str]
) -> tuple[str, str | None]:
    """Return ``(day_of_week, day_override)``.

    ``n#k`` and ``nL`` are day-of-month rules in APScheduler (``"3rd fri"``,
    ``"last fri"``), so they come back as a ``day`` override.
    """
    if field in _ANY:
        return "*", None

    if "/" in field:
        raise InvalidScheduleError(expression, f"stepped day-of-week {field!r} is not supported")

    if "#" in field:
        if "," in field:
            raise InvalidScheduleError(expression, f"'#' cannot be combined in a list: {field!r}")
        day, nth = field.split("#", 1)
        if nth not in _ORDINALS:
            raise InvalidScheduleError(expression, f"invalid weekday occurrence {nth!r}")
        return "*", f"{_ORDINALS[nth]} {_day_name(expression, day, weekdays)}"

    if len(field) > 1 and field.upper().endswith("L"):
        if "," in field:
            raise InvalidScheduleError(expression, f"'L' cannot be combined in a list: {field!r}")
        return "*", f"last {_day_name(expression, field[:-1], weekdays)}"

    return ",".join(_translate_dow_part(expression, part, weekdays) for part in field.split(",")), None


def _translate_dow_part(expression: str, part: str, weekdays: dict[str, str]) -> str:
    if "-" not in part:
        return _day_name(expression, part, weekdays)

    first, last = part.split("-", 1)
    first_name = _day_name(expression, first, weekdays)
    last_name = _day_name(expression, last, weekdays)
    if DAY_NAMES.index(first_name) <= DAY_NAMES.index(last_name):
        return f"{first_name}-{last_name}"

    # Range wraps past Sunday (e.g. SUN-SAT, FRI-MON).
    head = "sun" if first_name == "sun" else f"{first_name}-sun"
    tail = "mon" if last_name == "mon" else f"mon-{last_name}"
    return f"{head},{tail}"


def _day_name(expression: str, token: str, weekdays: dict[str, str]) -> str:
    name = token.strip().lower()
    if name in DAY_NAMES:
        return name
    if name in weekdays:
        return weekdays[name]
    raise InvalidScheduleError(expression, f"unknown day-of-week {token!r}")


__all__ = [
    "CronFields",
    "parse_cron",
    "build_trigger",
    "validate_cron",
    "next_fire_times",
]
