"""Domain-specific calculation helpers."""

from .allocation import allocate_sequentially, apply_adjustments, apply_deductions
from .allowance import personal_allowance
from .periods import (
    as_of_date_excluding_current_period,
    as_of_date_for_months_paid,
    current_period,
    equivalent_periods_worked,
    months_paid_options,
    period_dates_for,
    period_of,
    total_periods_in_range,
)
from .projection import project_income
from .utils import (
    calculate_progressive_tax,
    format_money,
    format_percentage,
    incremental_tax,
    marginal_rate,
    round_currency,
    round_rate,
    tax_on_slice,
)

__all__ = [
    "allocate_sequentially",
    "apply_adjustments",
    "apply_deductions",
    "as_of_date_excluding_current_period",
    "as_of_date_for_months_paid",
    "calculate_progressive_tax",
    "current_period",
    "equivalent_periods_worked",
    "format_money",
    "format_percentage",
    "incremental_tax",
    "marginal_rate",
    "months_paid_options",
    "period_dates_for",
    "period_of",
    "personal_allowance",
    "project_income",
    "round_currency",
    "round_rate",
    "tax_on_slice",
    "total_periods_in_range",
]
