"""Project part-year income to a full-year figure per source."""

from __future__ import annotations

import logging
import math
from datetime import date

from uktax.backend.app.models import IncomeSource, Projection
from uktax.backend.config.year_config import TaxYearConfiguration

from .periods import clamp_to_year_start, equivalent_periods_worked, total_periods_in_range

_LOGGER = logging.getLogger(__name__)

# Floor for auto-derived periods so a source that started days ago is not
# annualised from a near-zero denominator.
MIN_PERIODS_WORKED = 0.1

METHOD_ONE_OFF = "one_off"
METHOD_OVERRIDE = "override"
METHOD_PERIODS_PAID = "periods_paid"
METHOD_AUTO = "auto"
METHOD_INSUFFICIENT_DATA = "insufficient_data"


def _unprojected(source: IncomeSource, method: str) -> Projection:
    return Projection(
        source_id=source.id,
        income_to_date=source.income_to_date,
        projected_income=source.income_to_date,
        method=method,
    )


def project_income(
    source: IncomeSource,
    config: TaxYearConfiguration,
    as_of: date,
) -> Projection:
    """Return the projected (regular) or actual (one-off) income of ``source``.

    A caller-supplied ``projected_income`` always wins. Otherwise a regular
    source is annualised as ``income_to_date / periods_worked * total_periods``
    where periods are PAYE periods. Employment that has not started, or has no
    periods in the year, and non-finite results fall back to ``income_to_date``
    rather than raising.
    """

    if not source.is_regular:
        return _unprojected(source, METHOD_ONE_OFF)

    if source.projected_income is not None:
        return Projection(
            source_id=source.id,
            income_to_date=source.income_to_date,
            projected_income=source.projected_income,
            method=METHOD_OVERRIDE,
        )

    if source.periods_paid is not None and source.periods_paid < 0:
        raise ValueError(f"periods_paid for source '{source.id}' cannot be negative")

    year_start = config.start_date
    start = source.start_date or year_start
    end = source.end_date or config.end_date
    total = total_periods_in_range(start, end, year_start, config.end_date)
    if total.equivalent_periods <= 0:
        _LOGGER.debug("Source %s has no periods in the year; using income to date", source.id)
        return _unprojected(source, METHOD_INSUFFICIENT_DATA)

    start_period = total.start_period.number
    whole_periods: int | None = None

    # Zero periods paid means "not entered": derive them from the as-of date.
    if source.periods_paid:
        periods_worked = float(source.periods_paid)
        first_fraction = 1.0
        method = METHOD_PERIODS_PAID
    else:
        if as_of <= clamp_to_year_start(start, year_start):
            _LOGGER.debug(
                "Source %s has not started by %s; using income to date",
                source.id,
                as_of.isoformat(),
            )
            return _unprojected(source, METHOD_INSUFFICIENT_DATA)
        # Nothing is earned from a source after its end date.
        worked_to = as_of if as_of <= end else end
        worked = equivalent_periods_worked(start, worked_to, year_start)
        periods_worked = max(worked.equivalent_periods, MIN_PERIODS_WORKED)
        first_fraction = worked.first_period_fraction
        whole_periods = worked.whole_periods_after
        method = METHOD_AUTO

    monthly_rate = source.income_to_date / periods_worked
    projected = round(monthly_rate * total.equivalent_periods, 2)
    if not math.isfinite(projected):
        _LOGGER.debug("Non-finite projection for source %s; using income to date", source.id)
        return _unprojected(source, METHOD_INSUFFICIENT_DATA)

    return Projection(
        source_id=source.id,
        income_to_date=source.income_to_date,
        projected_income=projected,
        method=method,
        total_periods=total.equivalent_periods,
        periods_worked=periods_worked,
        first_period_fraction=first_fraction,
        monthly_rate=monthly_rate,
        start_period=start_period,
        whole_periods=whole_periods,
    )


__all__ = [
    "METHOD_AUTO",
    "METHOD_INSUFFICIENT_DATA",
    "METHOD_ONE_OFF",
    "METHOD_OVERRIDE",
    "METHOD_PERIODS_PAID",
    "MIN_PERIODS_WORKED",
    "project_income",
]
