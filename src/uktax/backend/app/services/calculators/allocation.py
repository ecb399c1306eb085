"""Sequential allocation of allowance, bands, deductions and adjustments.

Every running total (allowance left, band position, adjustment position) is
explicit fold state threaded through :func:`functools.reduce`, so the result
depends only on the order of the inputs.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from functools import reduce

from uktax.backend.app.models import (
    Adjustment,
    AdjustmentResult,
    Deduction,
    IncomeSource,
    SourceTaxDetail,
)
from uktax.backend.config.year_config import TaxBand, TaxYearConfiguration

from .utils import incremental_tax, tax_on_slice

BASIS_USER_OVERRIDE = "user_override"
BASIS_ACTUAL = "actual"
BASIS_BALANCED_PAYE = "balanced_paye"
BASIS_NOT_PROVIDED = "not_provided"


@dataclass(frozen=True, slots=True)
class AllocationState:
    allowance_remaining: float
    band_position: float = 0.0
    details: tuple[SourceTaxDetail, ...] = ()


@dataclass(frozen=True, slots=True)
class AdjustmentState:
    position: float
    tax: float = 0.0
    additional_income: float = 0.0
    results: tuple[AdjustmentResult, ...] = ()


def resolve_tax_paid(
    source: IncomeSource, tax_due: float, *, balanced_paye: bool = True
) -> tuple[float, str]:
    """Return the tax treated as paid for ``source`` and the basis used.

    An entered figure always wins. A regular source without one is assumed to
    have had exactly the right tax withheld ("balanced PAYE") while the toggle
    is on; anything else counts as nothing paid.
    """

    if source.tax_paid is not None:
        basis = BASIS_USER_OVERRIDE if source.is_regular else BASIS_ACTUAL
        return source.tax_paid, basis
    if source.is_regular and balanced_paye:
        return tax_due, BASIS_BALANCED_PAYE
    return 0.0, BASIS_NOT_PROVIDED


def allocate_sequentially(
    sources: Sequence[IncomeSource],
    incomes: Sequence[float],
    allowance: float,
    bands: Sequence[TaxBand],
    *,
    balanced_paye: bool = True,
) -> tuple[SourceTaxDetail, ...]:
    """Attribute allowance and band tax to each source in caller order."""

    if len(sources) != len(incomes):
        raise ValueError("Each income source needs exactly one income figure")

    def _step(state: AllocationState, entry: tuple[IncomeSource, float]) -> AllocationState:
        source, income = entry
        income = income if income > 0 else 0.0
        used = min(state.allowance_remaining, income)
        taxable = income - used
        tax_due = tax_on_slice(taxable, state.band_position, bands)
        tax_paid, basis = resolve_tax_paid(source, tax_due, balanced_paye=balanced_paye)
        detail = SourceTaxDetail(
            source_id=source.id,
            name=source.label,
            is_regular=source.is_regular,
            income=income,
            allowance_used=used,
            taxable_income=taxable,
            band_start=state.band_position,
            tax_due=tax_due,
            tax_paid=tax_paid,
            tax_paid_basis=basis,
        )
        return AllocationState(
            allowance_remaining=state.allowance_remaining - used,
            band_position=state.band_position + taxable,
            details=state.details + (detail,),
        )

    final = reduce(_step, zip(sources, incomes), AllocationState(allowance_remaining=allowance))
    return final.details


def apply_deductions(
    taxable_before: float, deductions: Sequence[Deduction]
) -> tuple[float, float]:
    """Return the total deducted and taxable income after deductions (>= 0)."""

    total = sum(deduction.amount for deduction in deductions)
    remaining = taxable_before - total
    return total, remaining if remaining > 0 else 0.0


def resolve_adjustment_kind(
    adjustment: Adjustment, config: TaxYearConfiguration | None = None
) -> str:
    if adjustment.kind is not None:
        return adjustment.kind
    if config is None:
        raise ValueError(
            f"Adjustment '{adjustment.id or adjustment.description}' has no kind"
        )
    return config.adjustment_kind(adjustment.category)


def apply_adjustments(
    adjustments: Sequence[Adjustment],
    start_position: float,
    bands: Sequence[TaxBand],
    config: TaxYearConfiguration | None = None,
) -> AdjustmentState:
    """Stack adjustments on top of ``start_position`` in input order.

    Taxable-income adjustments are taxed at the marginal position left by
    everything before them and move the position up; direct-tax adjustments
    add their amount to the tax total only.
    """

    def _step(state: AdjustmentState, adjustment: Adjustment) -> AdjustmentState:
        kind = resolve_adjustment_kind(adjustment, config)
        if kind == "taxable_income":
            if adjustment.amount < 0:
                raise ValueError(
                    "Taxable income adjustments cannot be negative "
                    f"('{adjustment.id or adjustment.description}')"
                )
            tax = incremental_tax(state.position, adjustment.amount, bands)
            advance = adjustment.amount
        else:
            tax = adjustment.amount
            advance = 0.0

        result = AdjustmentResult(
            adjustment_id=adjustment.id,
            description=adjustment.description,
            category=adjustment.category,
            kind=kind,
            amount=adjustment.amount,
            position_before=state.position,
            tax=tax,
        )
        return replace(
            state,
            position=state.position + advance,
            tax=state.tax + tax,
            additional_income=state.additional_income + advance,
            results=state.results + (result,),
        )

    return reduce(_step, adjustments, AdjustmentState(position=start_position))


__all__ = [
    "AdjustmentState",
    "AllocationState",
    "BASIS_ACTUAL",
    "BASIS_BALANCED_PAYE",
    "BASIS_NOT_PROVIDED",
    "BASIS_USER_OVERRIDE",
    "allocate_sequentially",
    "apply_adjustments",
    "apply_deductions",
    "resolve_adjustment_kind",
    "resolve_tax_paid",
]
