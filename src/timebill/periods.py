"""Billing period detection and work schedule generation.

Turns a reference date and a recurrence policy into concrete billing date
ranges, and a date range into the per-day schedule a user fills in:

    detect_period(Frequency.BOTH_15TH_AND_LAST, date(2024, 1, 10))
    -> 2023-12-16 .. 2023-12-31, "16th - 31st Dec 2023"

Everything here is pure. "Today" is always passed in explicitly; callers
resolve it from the configured timezone.
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

from .models import WorkDay


# Labels are always English, independent of LC_TIME
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)
MONTH_ABBRS = tuple(name[:3] for name in MONTH_NAMES)


class Frequency(str, Enum):
    EVERY_15TH = "EVERY_15TH"
    EVERY_LAST_DAY = "EVERY_LAST_DAY"
    BOTH_15TH_AND_LAST = "BOTH_15TH_AND_LAST"
    CUSTOM = "CUSTOM"


class Batch(str, Enum):
    FIRST_BATCH = "FIRST_BATCH"
    SECOND_BATCH = "SECOND_BATCH"
    WHOLE_MONTH = "WHOLE_MONTH"


class DayPolicy(str, Enum):
    WEEKDAYS_ONLY = "WEEKDAYS_ONLY"
    ALL_DAYS = "ALL_DAYS"
    CUSTOM = "CUSTOM"


class PeriodKind(str, Enum):
    FIRST_HALF = "FIRST_HALF"
    SECOND_HALF = "SECOND_HALF"
    FULL_MONTH = "FULL_MONTH"


@dataclass(frozen=True)
class BillingPeriod:
    start: date
    end: date
    label: str
    is_auto_detected: bool
    kind: PeriodKind = PeriodKind.FULL_MONTH

    def to_dict(self) -> dict:
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "label": self.label,
            "is_auto_detected": self.is_auto_detected,
            "kind": self.kind.value,
        }


def parse_date(value: date | str) -> date:
    """Accept a date or a YYYY-MM-DD string. Raises ValueError on bad input."""
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def format_date(value: date) -> str:
    return value.isoformat()


def ordinal_suffix(n: int) -> str:
    """English ordinal suffix: 1 -> st, 2 -> nd, 11 -> th, 23 -> rd."""
    if 11 <= n % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def _first_half(year: int, month: int, auto: bool) -> BillingPeriod:
    start = date(year, month, 1)
    return BillingPeriod(
        start=start,
        end=date(year, month, 15),
        label=f"1st - 15th {MONTH_ABBRS[month - 1]} {year}",
        is_auto_detected=auto,
        kind=PeriodKind.FIRST_HALF,
    )


def _second_half(year: int, month: int, auto: bool) -> BillingPeriod:
    start = date(year, month, 16)
    last = last_day_of_month(year, month)
    return BillingPeriod(
        start=start,
        end=date(year, month, last),
        label=f"16th - {last}{ordinal_suffix(last)} {MONTH_ABBRS[month - 1]} {year}",
        is_auto_detected=auto,
        kind=PeriodKind.SECOND_HALF,
    )


def _full_month(year: int, month: int, auto: bool) -> BillingPeriod:
    start = date(year, month, 1)
    return BillingPeriod(
        start=start,
        end=date(year, month, last_day_of_month(year, month)),
        label=f"Full {MONTH_NAMES[month - 1]} {year}",
        is_auto_detected=auto,
        kind=PeriodKind.FULL_MONTH,
    )


def detect_period(frequency: Frequency | str, today: date) -> BillingPeriod:
    """Pick the billing period an invoice raised on `today` should cover.

    BOTH_15TH_AND_LAST: from the 16th on, bill the 1st-15th just finished;
    up to the 15th, bill the second half of the previous month.
    EVERY_15TH: always a 1st-15th period, current month once past the 15th.
    EVERY_LAST_DAY: always a 16th-end period, current month from the 16th.

    CUSTOM, and any value that is not a known Frequency, falls back to the
    full current month.
    """
    try:
        frequency = Frequency(frequency)
    except ValueError:
        frequency = Frequency.CUSTOM

    day = today.day
    year, month = today.year, today.month
    prev_year, prev_month = _previous_month(year, month)

    if frequency is Frequency.BOTH_15TH_AND_LAST:
        if day >= 16:
            return _first_half(year, month, auto=True)
        return _second_half(prev_year, prev_month, auto=True)

    if frequency is Frequency.EVERY_15TH:
        if day > 15:
            return _first_half(year, month, auto=True)
        return _first_half(prev_year, prev_month, auto=True)

    if frequency is Frequency.EVERY_LAST_DAY:
        if day >= 16:
            return _second_half(year, month, auto=True)
        return _second_half(prev_year, prev_month, auto=True)

    # Frequency.CUSTOM: no recurrence boundary, use the whole month
    return _full_month(year, month, auto=True)


def period_by_batch(batch: Batch | str, reference_date: date) -> BillingPeriod:
    """Explicit half-month or whole-month period of reference_date's month."""
    batch = Batch(batch)
    year, month = reference_date.year, reference_date.month
    start = date(year, month, 1)
    last = last_day_of_month(year, month)

    if batch is Batch.FIRST_BATCH:
        return BillingPeriod(
            start=start,
            end=date(year, month, 15),
            label=f"1st Batch (1-15 {MONTH_ABBRS[month - 1]})",
            is_auto_detected=False,
            kind=PeriodKind.FIRST_HALF,
        )
    if batch is Batch.SECOND_BATCH:
        return BillingPeriod(
            start=date(year, month, 16),
            end=date(year, month, last),
            label=f"2nd Batch (16-{last} {MONTH_ABBRS[month - 1]})",
            is_auto_detected=False,
            kind=PeriodKind.SECOND_HALF,
        )
    return BillingPeriod(
        start=start,
        end=date(year, month, last),
        label=f"Whole Month ({MONTH_NAMES[month - 1]})",
        is_auto_detected=False,
        kind=PeriodKind.FULL_MONTH,
    )


def period_options(reference_date: date) -> list[BillingPeriod]:
    """Manual override choices, in picker order.

    Current month halves, previous month halves, then the two full months.
    """
    year, month = reference_date.year, reference_date.month
    prev_year, prev_month = _previous_month(year, month)
    return [
        _first_half(year, month, auto=False),
        _second_half(year, month, auto=False),
        _first_half(prev_year, prev_month, auto=False),
        _second_half(prev_year, prev_month, auto=False),
        _full_month(year, month, auto=False),
        _full_month(prev_year, prev_month, auto=False),
    ]


def _each_day(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def generate_work_schedule(
    start: date | str,
    end: date | str,
    default_hours: float,
) -> list[WorkDay]:
    """One WorkDay per calendar day in [start, end].

    Every day carries default_hours so the grid is fully editable, but
    weekends start excluded and do not count towards totals until toggled.
    """
    return [
        WorkDay(
            date=format_date(day),
            hours=default_hours,
            is_included=not is_weekend(day),
        )
        for day in _each_day(parse_date(start), parse_date(end))
    ]


def filter_days(
    start: date | str,
    end: date | str,
    policy: DayPolicy | str,
    custom_dates: list[str] | None = None,
) -> list[str]:
    """List the YYYY-MM-DD dates in [start, end] selected by policy.

    CUSTOM keeps range order, not the order of custom_dates.
    """
    policy = DayPolicy(policy)
    wanted = set(custom_dates or [])

    dates = []
    for day in _each_day(parse_date(start), parse_date(end)):
        day_str = format_date(day)
        if policy is DayPolicy.ALL_DAYS:
            dates.append(day_str)
        elif policy is DayPolicy.WEEKDAYS_ONLY:
            if not is_weekend(day):
                dates.append(day_str)
        elif day_str in wanted:
            dates.append(day_str)
    return dates
