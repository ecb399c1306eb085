"""Unit coverage for PAYE period arithmetic."""

from __future__ import annotations

from datetime import date

import pytest

from uktax.backend.app.services.calculators.periods import (
    as_of_date_excluding_current_period,
    as_of_date_for_months_paid,
    current_period,
    days_between,
    equivalent_periods_worked,
    months_paid_options,
    period_dates_for,
    period_of,
    total_periods_in_range,
)

YEAR_START = date(2025, 4, 6)


def test_days_between_is_inclusive() -> None:
    assert days_between(date(2025, 4, 6), date(2025, 4, 6)) == 1
    assert days_between(date(2025, 4, 6), date(2025, 5, 5)) == 30


@pytest.mark.parametrize(
    ("day", "number", "start", "end"),
    [
        (date(2025, 4, 6), 1, date(2025, 4, 6), date(2025, 5, 5)),
        (date(2025, 5, 5), 1, date(2025, 4, 6), date(2025, 5, 5)),
        (date(2025, 5, 6), 2, date(2025, 5, 6), date(2025, 6, 5)),
        (date(2025, 12, 31), 9, date(2025, 12, 6), date(2026, 1, 5)),
        (date(2026, 1, 5), 9, date(2025, 12, 6), date(2026, 1, 5)),
        (date(2026, 1, 6), 10, date(2026, 1, 6), date(2026, 2, 5)),
        (date(2026, 4, 5), 12, date(2026, 3, 6), date(2026, 4, 5)),
    ],
)
def test_period_of_maps_dates_to_paye_periods(
    day: date, number: int, start: date, end: date
) -> None:
    period = period_of(day, YEAR_START)

    assert period.number == number
    assert period.start == start
    assert period.end == end
    assert period.length_days == days_between(start, end)


def test_period_of_clamps_numbers_outside_the_year() -> None:
    assert period_of(date(2025, 1, 10), YEAR_START).number == 1
    assert period_of(date(2026, 8, 10), YEAR_START).number == 12


def test_period_dates_for_is_the_inverse_lookup() -> None:
    for number in range(1, 13):
        period = period_dates_for(number, YEAR_START)
        assert period_of(period.start, YEAR_START) == period
        assert period_of(period.end, YEAR_START) == period

    assert period_dates_for(0, YEAR_START).number == 1
    assert period_dates_for(13, YEAR_START).number == 12


def test_start_on_period_boundary_counts_a_whole_first_period() -> None:
    worked = equivalent_periods_worked(date(2025, 4, 6), date(2025, 9, 30), YEAR_START)

    assert worked.first_period_fraction == 1.0
    assert worked.whole_periods_after == 5
    assert worked.equivalent_periods == 6.0
    assert worked.start_period.number == 1


def test_mid_period_start_contributes_a_fraction() -> None:
    # 21 April to 5 May is 15 of the period's 30 days.
    worked = equivalent_periods_worked(date(2025, 4, 21), date(2025, 7, 10), YEAR_START)

    assert worked.first_period_fraction == pytest.approx(0.5)
    assert worked.whole_periods_after == 3
    assert worked.equivalent_periods == pytest.approx(3.5)


def test_start_before_year_is_clamped_to_year_start() -> None:
    worked = equivalent_periods_worked(date(2024, 1, 1), date(2025, 6, 10), YEAR_START)

    assert worked.first_period_fraction == 1.0
    assert worked.equivalent_periods == 3.0


def test_total_periods_in_range_covers_the_employment_window() -> None:
    assert total_periods_in_range(
        date(2025, 4, 6), date(2026, 4, 5), YEAR_START
    ).equivalent_periods == 12.0
    assert total_periods_in_range(
        date(2025, 4, 21), date(2026, 4, 5), YEAR_START
    ).equivalent_periods == pytest.approx(11.5)
    assert total_periods_in_range(
        date(2024, 4, 6), date(2027, 1, 1), YEAR_START
    ).equivalent_periods == 12.0


def test_total_periods_in_range_for_a_leaver() -> None:
    window = total_periods_in_range(date(2025, 4, 6), date(2025, 10, 31), YEAR_START)

    assert window.whole_periods_after == 6
    assert window.equivalent_periods == 7.0


def test_total_periods_in_range_is_empty_before_the_year() -> None:
    window = total_periods_in_range(date(2024, 6, 6), date(2025, 3, 31), YEAR_START)

    assert window.equivalent_periods == 0.0
    assert window.whole_periods_after == 0


def test_current_period_and_previous_period_end() -> None:
    today = date(2025, 10, 15)

    assert current_period(today, YEAR_START).number == 7
    assert as_of_date_excluding_current_period(today, YEAR_START) == date(2025, 10, 5)


def test_months_paid_options_offer_previous_and_current_month() -> None:
    options = months_paid_options(date(2025, 4, 6), date(2025, 9, 15), YEAR_START)

    assert [option.value for option in options] == [5, 6]
    assert options[0].label == "5 months (through Aug)"
    assert options[0].period_range == "Apr-Aug"
    assert options[1].label == "6 months (through Sep)"
    assert options[1].period_range == "Apr-Sep"


def test_months_paid_options_uses_calendar_month_not_paye_period() -> None:
    # 2 October sits in PAYE period 6 but October's pay is what is in question.
    options = months_paid_options(date(2025, 4, 6), date(2025, 10, 2), YEAR_START)

    assert [option.value for option in options] == [6, 7]


def test_months_paid_options_for_new_starter() -> None:
    options = months_paid_options(date(2025, 9, 10), date(2025, 9, 20), YEAR_START)

    assert len(options) == 1
    assert options[0].label == "1 month (through Sep)"
    assert options[0].period_range == "Sep-Sep"


def test_months_paid_options_empty_before_start() -> None:
    assert months_paid_options(date(2025, 10, 10), date(2025, 9, 1), YEAR_START) == []


def test_as_of_date_for_months_paid_is_capped_at_today() -> None:
    start = date(2025, 4, 6)

    assert as_of_date_for_months_paid(6, start, date(2025, 12, 1), YEAR_START) == date(
        2025, 10, 5
    )
    assert as_of_date_for_months_paid(6, start, date(2025, 9, 20), YEAR_START) == date(
        2025, 9, 20
    )


def test_as_of_date_for_months_paid_rejects_negative_counts() -> None:
    with pytest.raises(ValueError):
        as_of_date_for_months_paid(-1, date(2025, 4, 6), date(2025, 9, 20), YEAR_START)
