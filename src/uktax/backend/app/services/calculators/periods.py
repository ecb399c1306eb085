"""PAYE period arithmetic.

A PAYE pay period runs from the 6th of one calendar month to the 5th of the
next. Period 1 starts on the first day of the tax year (6 April) and period 12
ends on the last (5 April of the following calendar year). Dates earlier than
the tax-year start are clamped to it before any period maths, because nobody
can have worked periods before the year began.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta

PERIODS_PER_YEAR = 12
PERIOD_START_DAY = 6


@dataclass(frozen=True, slots=True)
class PayePeriod:
    """A single 6th-to-5th pay period within a tax year."""

    number: int
    start: date
    end: date
    length_days: int


@dataclass(frozen=True, slots=True)
class EquivalentPeriods:
    """Fractional period count for a span that may start mid-period."""

    equivalent_periods: float
    first_period_fraction: float
    whole_periods_after: int
    start_period: PayePeriod


@dataclass(frozen=True, slots=True)
class MonthsPaidOption:
    """Selectable "months paid so far" value for a regular source."""

    value: int
    label: str
    period_range: str


def days_between(start: date, end: date) -> int:
    """Return the inclusive number of days from ``start`` to ``end``."""

    return (end - start).days + 1


def _shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def _clamp_period_number(number: int) -> int:
    return max(1, min(PERIODS_PER_YEAR, number))


def _months_since_year_start(year: int, month: int, year_start: date) -> int:
    return (year - year_start.year) * 12 + month - year_start.month


def _build_period(number: int, start_year: int, start_month: int) -> PayePeriod:
    start = date(start_year, start_month, PERIOD_START_DAY)
    end_year, end_month = _shift_month(start_year, start_month, 1)
    end = date(end_year, end_month, PERIOD_START_DAY - 1)
    return PayePeriod(
        number=number,
        start=start,
        end=end,
        length_days=days_between(start, end),
    )


def default_year_end(year_start: date) -> date:
    """Return the 5th of the month a year after ``year_start``."""

    return date(year_start.year + 1, year_start.month, PERIOD_START_DAY - 1)


def clamp_to_year_start(day: date, year_start: date) -> date:
    return day if day >= year_start else year_start


def period_of(day: date, year_start: date) -> PayePeriod:
    """Return the PAYE period containing ``day``.

    The 1st to the 5th of a month belong to the period that began on the 6th
    of the previous month. The period number keeps counting across the
    December/January boundary and is clamped to ``[1, 12]``.
    """

    if day.day >= PERIOD_START_DAY:
        start_year, start_month = day.year, day.month
    else:
        start_year, start_month = _shift_month(day.year, day.month, -1)

    number = _clamp_period_number(
        _months_since_year_start(start_year, start_month, year_start) + 1
    )
    return _build_period(number, start_year, start_month)


def period_dates_for(number: int, year_start: date) -> PayePeriod:
    """Return the boundaries of period ``number`` (clamped to ``[1, 12]``)."""

    number = _clamp_period_number(number)
    start_year, start_month = _shift_month(year_start.year, year_start.month, number - 1)
    return _build_period(number, start_year, start_month)


def current_period(today: date, year_start: date) -> PayePeriod:
    return period_of(today, year_start)


def _fractional_periods(start: date, end_period: PayePeriod, year_start: date) -> EquivalentPeriods:
    start_period = period_of(start, year_start)
    days_in_first = days_between(start, start_period.end)
    first_fraction = days_in_first / start_period.length_days
    whole_after = max(0, end_period.number - start_period.number)
    return EquivalentPeriods(
        equivalent_periods=first_fraction + whole_after,
        first_period_fraction=first_fraction,
        whole_periods_after=whole_after,
        start_period=start_period,
    )


def equivalent_periods_worked(start: date, as_of: date, year_start: date) -> EquivalentPeriods:
    """Count the periods worked from ``start`` up to and including ``as_of``.

    The first period contributes the share of its days actually worked
    (exactly ``1.0`` when employment starts on the 6th); every later period up
    to the as-of period counts in full.
    """

    effective_start = clamp_to_year_start(start, year_start)
    return _fractional_periods(effective_start, period_of(as_of, year_start), year_start)


def total_periods_in_range(
    start: date,
    end: date,
    year_start: date,
    year_end: date | None = None,
) -> EquivalentPeriods:
    """Count the periods in the employment window, both ends clamped to the year.

    A window that closes before it opens (a leaver who left before the year
    began) holds no periods at all.
    """

    year_end = year_end or default_year_end(year_start)
    effective_start = clamp_to_year_start(start, year_start)
    effective_end = end if end <= year_end else year_end
    if effective_end < effective_start:
        return EquivalentPeriods(
            equivalent_periods=0.0,
            first_period_fraction=0.0,
            whole_periods_after=0,
            start_period=period_of(effective_start, year_start),
        )
    return _fractional_periods(effective_start, period_of(effective_end, year_start), year_start)


def as_of_date_excluding_current_period(today: date, year_start: date) -> date:
    """Return the last day of the period before the one containing ``today``."""

    return period_of(today, year_start).start - timedelta(days=1)


def _period_month_name(number: int, year_start: date) -> str:
    _, month = _shift_month(year_start.year, year_start.month, number - 1)
    return calendar.month_abbr[month]


def _calendar_month_period(today: date, year_start: date) -> int:
    # Pay lands at the end of a calendar month, so 1 February asks about
    # February's pay rather than the period that started on 6 January.
    return _clamp_period_number(_months_since_year_start(today.year, today.month, year_start) + 1)


def months_paid_options(start: date, today: date, year_start: date) -> list[MonthsPaidOption]:
    """Return the plausible "months paid so far" choices for a regular source.

    The first option assumes the current calendar month has not been paid
    yet, the second that it has. Nothing is offered before employment starts.
    """

    start_period = period_of(clamp_to_year_start(start, year_start), year_start)
    current = _calendar_month_period(today, year_start)
    max_months = current - start_period.number + 1
    if max_months < 1:
        return []

    start_name = _period_month_name(start_period.number, year_start)
    options: list[MonthsPaidOption] = []

    def _option(months: int, through: int) -> MonthsPaidOption:
        through_name = _period_month_name(through, year_start)
        plural = "" if months == 1 else "s"
        return MonthsPaidOption(
            value=months,
            label=f"{months} month{plural} (through {through_name})",
            period_range=f"{start_name}-{through_name}",
        )

    if max_months > 1:
        options.append(_option(max_months - 1, current - 1))
    options.append(_option(max_months, current))
    return options


def as_of_date_for_months_paid(
    months_paid: int,
    start: date,
    today: date,
    year_start: date,
) -> date:
    """Convert a months-paid count into the as-of date it implies.

    The result is the end of the last paid period, but never later than
    ``today``.
    """

    if months_paid < 0:
        raise ValueError("months_paid cannot be negative")

    start_period = period_of(clamp_to_year_start(start, year_start), year_start)
    target = period_dates_for(start_period.number + months_paid - 1, year_start)
    return target.end if target.end < today else today


__all__ = [
    "EquivalentPeriods",
    "MonthsPaidOption",
    "PERIODS_PER_YEAR",
    "PayePeriod",
    "as_of_date_excluding_current_period",
    "as_of_date_for_months_paid",
    "clamp_to_year_start",
    "current_period",
    "days_between",
    "default_year_end",
    "equivalent_periods_worked",
    "months_paid_options",
    "period_dates_for",
    "period_of",
    "total_periods_in_range",
]
