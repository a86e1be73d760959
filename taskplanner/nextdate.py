"""Repeat rules for tasks: computing the next date a task falls on."""

from __future__ import annotations

import calendar
import re
from collections.abc import Callable, Iterator
from datetime import date, datetime, timedelta, timezone

DATE_FORMAT = "%Y%m%d"

_DATE_RE = re.compile(r"[0-9]{8}")
_INT_RE = re.compile(r"[+-]?[0-9]+")


class RuleError(ValueError):
    """Raised when a date or a repeat rule cannot be used."""


def parse_date(value: str) -> date:
    """Parse a date written as YYYYMMDD."""
    if not isinstance(value, str) or not _DATE_RE.fullmatch(value):
        raise ValueError(f"invalid date {value!r}: expected YYYYMMDD")
    try:
        return date(int(value[:4]), int(value[4:6]), int(value[6:]))
    except ValueError as exc:
        raise ValueError(f"invalid date {value!r}: {exc}") from None


def format_date(value: date) -> str:
    """Format a date as YYYYMMDD."""
    return f"{value.year:04d}{value.month:02d}{value.day:02d}"


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def _atoi(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"not an integer: {text!r}")
    return int(text)


def _parse_list(text: str, valid: Callable[[int], bool], what: str) -> list[int]:
    values = []
    for item in text.split(","):
        try:
            number = _atoi(item)
        except ValueError:
            raise RuleError(f"invalid {what} value {item!r}") from None
        if not valid(number):
            raise RuleError(f"invalid {what} value {item!r}")
        values.append(number)
    return values


def _following_days(start: date, today: date) -> Iterator[date]:
    """Yield every day from start onwards that lies strictly after today."""
    day = start
    while True:
        if day > today:
            yield day
        day += timedelta(days=1)


def _add_year(day: date) -> date:
    if day.year >= date.max.year:
        raise OverflowError("date out of range")
    try:
        return day.replace(year=day.year + 1)
    except ValueError:
        # February 29th rolls over into March 1st.
        return date(day.year + 1, 3, 1)


def _yearly(start: date, today: date, args: list[str]) -> date:
    day = _add_year(start)
    while day.year < today.year:
        day = _add_year(day)
    return day


def _every_n_days(start: date, today: date, args: list[str]) -> date:
    if not args:
        raise RuleError("rule 'd' needs an interval")
    try:
        interval = _atoi(args[0])
    except ValueError:
        raise RuleError(f"invalid interval {args[0]!r}") from None
    if not 1 <= interval <= 400:
        raise RuleError(f"interval out of range: {interval}")
    step = timedelta(days=interval)
    day = start + step
    while day <= today:
        day += step
    return day


def _weekly(start: date, today: date, args: list[str]) -> date:
    if not args:
        raise RuleError("rule 'w' needs weekdays")
    weekdays = set(_parse_list(args[0], lambda n: 1 <= n <= 7, "weekday"))
    return next(
        day for day in _following_days(start, today) if day.isoweekday() in weekdays
    )


def _monthly(start: date, today: date, args: list[str]) -> date:
    if not args:
        raise RuleError("rule 'm' needs days of month")
    days = _parse_list(args[0], lambda n: n != 0 and -31 <= n <= 31, "day")
    months: set[int] = set()
    if len(args) >= 2:
        months = set(_parse_list(args[1], lambda n: 1 <= n <= 12, "month"))

    for day in _following_days(start, today):
        if months and day.month not in months:
            continue
        last = calendar.monthrange(day.year, day.month)[1]
        for wanted in days:
            if wanted == -3:
                raise RuleError("invalid day value -3")
            target = last + wanted + 1 if wanted < 0 else wanted
            if target == day.day:
                return day
    raise RuleError("no date matches the rule")


_RULES: dict[str, Callable[[date, date, list[str]], date]] = {
    "y": _yearly,
    "d": _every_n_days,
    "w": _weekly,
    "m": _monthly,
}


def next_date(now: date | datetime, dstart: str, repeat: str) -> str:
    """Return the next date (YYYYMMDD) after now for a task starting at dstart."""
    try:
        start = parse_date(dstart)
    except ValueError as exc:
        raise RuleError(f"cannot parse date: {exc}") from exc
    if not repeat:
        raise RuleError("missing repeat rule")

    rule, *args = repeat.split(" ")
    handler = _RULES.get(rule)
    if handler is None:
        raise RuleError(f"unknown rule {rule!r}")
    try:
        result = handler(start, _as_date(now), args)
    except OverflowError:
        raise RuleError("no date matches the rule") from None
    return format_date(result)