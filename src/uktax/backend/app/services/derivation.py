"""Human-readable, step-by-step derivation of a calculation result."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from uktax.backend.app.localization import Translator
from uktax.backend.app.models import (
    CalculationResult,
    Deduction,
    DerivationStep,
    Projection,
)
from uktax.backend.config.year_config import BandTable, TaxYearConfiguration

from .calculators.utils import (
    band_for_position,
    band_slices,
    format_money,
    format_percentage,
)


def category_label(
    category: str,
    label_keys: Mapping[str, str],
    translator: Translator,
) -> str:
    key = label_keys.get(category)
    return translator(key) if key else category


def projection_note(projection: Projection, translator: Translator, as_of: str) -> str:
    key = f"projection.{projection.method}"
    if projection.method in {"auto", "periods_paid"}:
        return translator.format(
            key,
            income_to_date=format_money(projection.income_to_date),
            periods_worked=f"{projection.periods_worked or 0:.2f}",
            total_periods=f"{projection.total_periods or 0:.2f}",
            first_fraction=f"{(projection.first_period_fraction or 0) * 100:.1f}%",
            start_period=projection.start_period,
            whole_periods=projection.whole_periods or 0,
            monthly_rate=format_money(projection.monthly_rate or 0),
            as_of=as_of,
        )
    return translator(key)


def _total_income_step(result: CalculationResult, translator: Translator) -> DerivationStep:
    as_of = result.as_of.strftime("%d/%m/%Y")
    lines = [
        translator.format(
            "steps.total_income.source",
            name=detail.name,
            income=format_money(projection.projected_income),
            note=projection_note(projection, translator, as_of),
        )
        for detail, projection in zip(result.source_details, result.projections)
    ]
    lines.append(
        translator.format("steps.total_income.total", total=format_money(result.total_income))
    )
    return DerivationStep(
        key="total_income",
        title=translator("steps.total_income.title"),
        lines=tuple(lines),
    )


def _allowance_step(
    result: CalculationResult, config: TaxYearConfiguration, translator: Translator
) -> DerivationStep:
    allowance = config.personal_allowance
    total = result.total_income
    if total <= allowance.taper_threshold:
        line = translator.format(
            "steps.personal_allowance.full",
            total=format_money(total),
            threshold=format_money(allowance.taper_threshold),
            allowance=format_money(result.personal_allowance),
        )
    elif result.personal_allowance <= 0:
        line = translator.format(
            "steps.personal_allowance.withdrawn",
            total=format_money(total),
            limit=format_money(allowance.taper_limit),
        )
    else:
        line = translator.format(
            "steps.personal_allowance.tapered",
            total=format_money(total),
            threshold=format_money(allowance.taper_threshold),
            full=format_money(allowance.amount),
            reduction=format_money(allowance.amount - result.personal_allowance),
            allowance=format_money(result.personal_allowance),
        )
    return DerivationStep(
        key="personal_allowance",
        title=translator("steps.personal_allowance.title"),
        lines=(line,),
    )


def _allocation_step(
    result: CalculationResult, table: BandTable, translator: Translator
) -> DerivationStep:
    lines = [translator.format("steps.allocation.table", table=table.label)]
    for detail in result.source_details:
        lines.append(
            translator.format(
                "steps.allocation.source",
                name=detail.name,
                income=format_money(detail.income),
                allowance=format_money(detail.allowance_used),
                taxable=format_money(detail.taxable_income),
                tax_due=format_money(detail.tax_due),
                tax_paid=format_money(detail.tax_paid),
                basis=translator(f"basis.{detail.tax_paid_basis}"),
            )
        )
    return DerivationStep(
        key="allocation",
        title=translator("steps.allocation.title"),
        lines=tuple(lines),
    )


def _deductions_step(
    result: CalculationResult,
    deductions: Sequence[Deduction],
    config: TaxYearConfiguration,
    translator: Translator,
) -> DerivationStep:
    if not deductions:
        lines = [translator("steps.deductions.none")]
    else:
        label_keys = {entry.id: entry.label_key for entry in config.deduction_categories}
        lines = [
            translator.format(
                "steps.deductions.entry",
                description=deduction.description
                or category_label(deduction.category, label_keys, translator),
                amount=format_money(deduction.amount),
            )
            for deduction in deductions
        ]
        lines.append(
            translator.format(
                "steps.deductions.total",
                before=format_money(result.taxable_before_deductions),
                total=format_money(result.total_deductions),
                after=format_money(result.taxable_after_deductions),
            )
        )
    return DerivationStep(
        key="deductions",
        title=translator("steps.deductions.title"),
        lines=tuple(lines),
    )


def _tax_on_income_step(
    result: CalculationResult, table: BandTable, translator: Translator
) -> DerivationStep:
    lines = [
        translator.format(
            "steps.tax_on_income.band",
            amount=format_money(amount),
            rate=format_percentage(band.rate),
            label=band.label,
            tax=format_money(tax),
        )
        for band, amount, tax in band_slices(result.taxable_after_deductions, 0.0, table.bands)
    ]
    lines.append(
        translator.format(
            "steps.tax_on_income.total", tax=format_money(result.tax_due_on_income)
        )
    )
    return DerivationStep(
        key="tax_on_income",
        title=translator("steps.tax_on_income.title"),
        lines=tuple(lines),
    )


def _adjustments_step(
    result: CalculationResult, config: TaxYearConfiguration, translator: Translator
) -> DerivationStep:
    if not result.adjustments:
        lines = [translator("steps.adjustments.none")]
    else:
        label_keys = {entry.id: entry.label_key for entry in config.adjustment_categories}
        lines = [
            translator.format(
                f"steps.adjustments.{entry.kind}",
                description=entry.description
                or category_label(entry.category, label_keys, translator),
                amount=format_money(entry.amount),
                position=format_money(entry.position_before),
                tax=format_money(entry.tax),
            )
            for entry in result.adjustments
        ]
        lines.append(
            translator.format("steps.adjustments.total", tax=format_money(result.adjustment_tax))
        )
    return DerivationStep(
        key="adjustments",
        title=translator("steps.adjustments.title"),
        lines=tuple(lines),
    )


def _summary_step(
    result: CalculationResult, table: BandTable, translator: Translator
) -> DerivationStep:
    band = band_for_position(result.final_taxable_income, table.bands)
    lines = (
        translator.format(
            "steps.summary.final_tax",
            tax_on_income=format_money(result.tax_due_on_income),
            adjustment_tax=format_money(result.adjustment_tax),
            final=format_money(result.final_tax_due),
        ),
        translator.format("steps.summary.tax_paid", tax_paid=format_money(result.tax_paid)),
        translator.format(
            "steps.summary.net_position",
            net=format_money(result.net_position),
            status=translator(f"status.{result.status}"),
        ),
        translator.format(
            "steps.summary.marginal_rate",
            rate=format_percentage(result.marginal_rate),
            label=band.label,
        ),
    )
    return DerivationStep(
        key="summary",
        title=translator("steps.summary.title"),
        lines=lines,
    )


def build_derivation_steps(
    result: CalculationResult,
    deductions: Sequence[Deduction],
    config: TaxYearConfiguration,
    table: BandTable,
    translator: Translator,
) -> tuple[DerivationStep, ...]:
    """Return the seven derivation steps for ``result`` in display order."""

    return (
        _total_income_step(result, translator),
        _allowance_step(result, config, translator),
        _allocation_step(result, table, translator),
        _deductions_step(result, deductions, config, translator),
        _tax_on_income_step(result, table, translator),
        _adjustments_step(result, config, translator),
        _summary_step(result, table, translator),
    )


__all__ = ["build_derivation_steps", "category_label", "projection_note"]
