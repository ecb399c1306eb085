"""Personal allowance with the high-income taper."""

from __future__ import annotations

from uktax.backend.config.year_config import PersonalAllowanceConfig


def personal_allowance(total_income: float, config: PersonalAllowanceConfig) -> float:
    """Return the allowance available against ``total_income``.

    The allowance is a whole-person entitlement, so callers pass the sum of
    every source's projected or actual income. Between the taper threshold and
    the taper limit it falls by one pound for every two pounds of income.
    """

    if total_income <= config.taper_threshold:
        return config.amount
    if total_income >= config.taper_limit:
        return 0.0

    reduced = config.amount - (total_income - config.taper_threshold) / 2
    return reduced if reduced > 0 else 0.0


__all__ = ["personal_allowance"]
