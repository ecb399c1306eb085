"""Orchestrate request validation, projection and the tax calculation.

``calculate`` is the pure engine entry point: it takes immutable inputs plus an
explicit as-of date and returns a :class:`CalculationResult`. ``calculate_tax``
wraps it for JSON-shaped payloads, resolving the year configuration, the
translator and the calculation toggles, and is the only place that falls back
to today's date.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from time import perf_counter
from typing import Any

from pydantic import ValidationError

from uktax.backend.app.localization import Translator, get_translator
from uktax.backend.app.models import (
    Adjustment,
    CalculationRequest,
    CalculationResponse,
    CalculationResult,
    Deduction,
    IncomeSource,
    format_validation_error,
)
from uktax.backend.config.year_config import (
    TaxYearConfiguration,
    default_year,
    load_year_configuration,
)

from .calculators import (
    allocate_sequentially,
    apply_adjustments,
    apply_deductions,
    calculate_progressive_tax,
    marginal_rate,
    personal_allowance,
    project_income,
    round_currency,
    round_rate,
)
from .derivation import build_derivation_steps, category_label

_LOGGER = logging.getLogger(__name__)

BALANCED_PAYE_TOGGLE = "balanced_paye"


def _profiling_enabled() -> bool:
    """Return ``True`` when calculation profiling should be captured."""

    flag = os.getenv("UKTAX_PROFILE_CALCULATIONS", "")
    return flag.strip().lower() in {"1", "true", "yes", "on"}


@contextmanager
def _profile_section(name: str, store: dict[str, float] | None):
    """Capture the duration of a named section when profiling is enabled."""

    if store is None:
        yield
        return

    start = perf_counter()
    try:
        yield
    finally:
        store[name] = perf_counter() - start


def calculate(
    sources: Sequence[IncomeSource],
    deductions: Sequence[Deduction],
    adjustments: Sequence[Adjustment],
    config: TaxYearConfiguration,
    *,
    as_of: date,
    band_table: str | None = None,
    balanced_paye: bool = True,
    translator: Translator | None = None,
    timings: dict[str, float] | None = None,
) -> CalculationResult:
    """Run the full calculation for one snapshot of inputs.

    The per-source breakdown is an order-dependent attribution; the headline
    ``tax_due_on_income`` is recomputed from the aggregate so reordering
    sources never changes it.
    """

    table_name = band_table or config.default_band_table
    table = config.band_table(table_name)
    bands = table.bands

    with _profile_section("projection", timings):
        projections = tuple(project_income(source, config, as_of) for source in sources)

    incomes = [projection.projected_income for projection in projections]
    total_income = sum(incomes)
    allowance = personal_allowance(total_income, config.personal_allowance)

    with _profile_section("allocation", timings):
        details = allocate_sequentially(
            sources, incomes, allowance, bands, balanced_paye=balanced_paye
        )

    taxable_before = total_income - allowance
    total_deductions, taxable_after = apply_deductions(taxable_before, deductions)
    tax_due_on_income = calculate_progressive_tax(taxable_after, bands)

    with _profile_section("adjustments", timings):
        adjustment_state = apply_adjustments(adjustments, taxable_after, bands, config)

    result = CalculationResult(
        as_of=as_of,
        band_table=table_name,
        total_income=total_income,
        personal_allowance=allowance,
        projections=projections,
        source_details=details,
        total_deductions=total_deductions,
        taxable_before_deductions=taxable_before,
        taxable_after_deductions=taxable_after,
        tax_due_on_income=tax_due_on_income,
        adjustments=adjustment_state.results,
        adjustment_tax=adjustment_state.tax,
        additional_taxable_income=adjustment_state.additional_income,
        final_taxable_income=adjustment_state.position,
        final_tax_due=tax_due_on_income + adjustment_state.tax,
        tax_paid=sum(detail.tax_paid for detail in details),
        marginal_rate=marginal_rate(adjustment_state.position, bands),
    )

    with _profile_section("derivation", timings):
        steps = build_derivation_steps(
            result, deductions, config, table, translator or get_translator()
        )
    return replace(result, steps=steps)


def _validate_request(payload: Mapping[str, Any] | CalculationRequest) -> CalculationRequest:
    try:
        if isinstance(payload, CalculationRequest):
            return CalculationRequest.model_validate(payload.model_dump(mode="python"))
        if not isinstance(payload, Mapping):
            raise ValueError("Payload must be a mapping")
        return CalculationRequest.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(format_validation_error(exc)) from exc


def _resolve_toggles(
    request: CalculationRequest, config: TaxYearConfiguration
) -> dict[str, bool]:
    merged = dict(config.toggles)
    merged.update(request.toggles)
    return merged


def _build_inputs(
    request: CalculationRequest, config: TaxYearConfiguration
) -> tuple[list[IncomeSource], list[Deduction], list[Adjustment]]:
    sources = [
        IncomeSource(
            id=entry.id or f"source-{index}",
            name=entry.name,
            income_to_date=entry.income_to_date,
            is_regular=entry.is_regular,
            start_date=entry.start_date,
            end_date=entry.end_date,
            periods_paid=entry.periods_paid,
            projected_income=entry.projected_income,
            tax_paid=entry.tax_paid,
        )
        for index, entry in enumerate(request.sources, start=1)
    ]

    deduction_ids = set(config.deduction_category_ids)
    deductions: list[Deduction] = []
    for index, entry in enumerate(request.deductions, start=1):
        if entry.category not in deduction_ids:
            raise ValueError(f"Unknown deduction category '{entry.category}'")
        deductions.append(
            Deduction(
                id=entry.id or f"deduction-{index}",
                description=entry.description,
                amount=entry.amount,
                category=entry.category,
            )
        )

    adjustment_ids = set(config.adjustment_category_ids)
    adjustments: list[Adjustment] = []
    for index, entry in enumerate(request.adjustments, start=1):
        if entry.category not in adjustment_ids:
            raise ValueError(f"Unknown adjustment category '{entry.category}'")
        adjustments.append(
            Adjustment(
                id=entry.id or f"adjustment-{index}",
                description=entry.description,
                amount=entry.amount,
                category=entry.category,
                kind=entry.kind or config.adjustment_kind(entry.category),
            )
        )

    return sources, deductions, adjustments


def _serialise_result(
    result: CalculationResult,
    config: TaxYearConfiguration,
    translator: Translator,
    *,
    balanced_paye: bool,
) -> dict[str, Any]:
    summary = {
        "total_income": round_currency(result.total_income),
        "personal_allowance": round_currency(result.personal_allowance),
        "taxable_before_deductions": round_currency(result.taxable_before_deductions),
        "total_deductions": round_currency(result.total_deductions),
        "taxable_after_deductions": round_currency(result.taxable_after_deductions),
        "tax_due_on_income": round_currency(result.tax_due_on_income),
        "adjustment_tax": round_currency(result.adjustment_tax),
        "additional_taxable_income": round_currency(result.additional_taxable_income),
        "final_taxable_income": round_currency(result.final_taxable_income),
        "final_tax_due": round_currency(result.final_tax_due),
        "tax_paid": round_currency(result.tax_paid),
        "net_position": round_currency(result.net_position),
        "status": result.status,
        "status_label": translator(f"status.{result.status}"),
        "marginal_rate": round_rate(result.marginal_rate),
        "marginal_rate_label": translator("summary.marginal_rate"),
        "labels": {
            key: translator(f"summary.{key}")
            for key in (
                "total_income",
                "personal_allowance",
                "total_deductions",
                "taxable_income",
                "tax_due_on_income",
                "adjustment_tax",
                "final_tax_due",
                "tax_paid",
                "net_position",
                "marginal_rate",
            )
        },
    }

    projections = [
        {
            "source_id": projection.source_id,
            "income_to_date": round_currency(projection.income_to_date),
            "projected_income": round_currency(projection.projected_income),
            "method": projection.method,
            "total_periods": None
            if projection.total_periods is None
            else round_rate(projection.total_periods),
            "periods_worked": None
            if projection.periods_worked is None
            else round_rate(projection.periods_worked),
            "first_period_fraction": None
            if projection.first_period_fraction is None
            else round_rate(projection.first_period_fraction),
            "monthly_rate": None
            if projection.monthly_rate is None
            else round_currency(projection.monthly_rate),
        }
        for projection in result.projections
    ]

    sources = [
        {
            "source_id": detail.source_id,
            "name": detail.name,
            "is_regular": detail.is_regular,
            "income": round_currency(detail.income),
            "allowance_used": round_currency(detail.allowance_used),
            "taxable_income": round_currency(detail.taxable_income),
            "tax_due": round_currency(detail.tax_due),
            "tax_paid": round_currency(detail.tax_paid),
            "difference": round_currency(detail.difference),
            "tax_paid_basis": detail.tax_paid_basis,
            "note": translator(f"basis.{detail.tax_paid_basis}"),
        }
        for detail in result.source_details
    ]

    adjustment_labels = {entry.id: entry.label_key for entry in config.adjustment_categories}
    adjustments = [
        {
            "adjustment_id": entry.adjustment_id,
            "description": entry.description
            or category_label(entry.category, adjustment_labels, translator),
            "category": entry.category,
            "kind": entry.kind,
            "amount": round_currency(entry.amount),
            "tax": round_currency(entry.tax),
        }
        for entry in result.adjustments
    ]

    steps = [
        {"key": step.key, "title": step.title, "lines": list(step.lines)}
        for step in result.steps
    ]

    return {
        "summary": summary,
        "projections": projections,
        "sources": sources,
        "adjustments": adjustments,
        "steps": steps,
        "meta": {
            "year": config.year,
            "locale": translator.locale,
            "as_of": result.as_of,
            "band_table": result.band_table,
            "balanced_paye": balanced_paye,
        },
    }


def calculate_tax(
    payload: Mapping[str, Any] | CalculationRequest,
    *,
    today: date | None = None,
) -> dict[str, Any]:
    """Compute the in-year tax position for the provided payload."""

    request_model = _validate_request(payload)

    timings: dict[str, float] | None = {} if _profiling_enabled() else None
    overall_start = perf_counter() if timings is not None else None

    year = request_model.year if request_model.year is not None else default_year()
    try:
        config = load_year_configuration(year)
    except FileNotFoundError as exc:
        raise ValueError(f"Unsupported tax year: {year}") from exc

    toggles = _resolve_toggles(request_model, config)
    balanced_paye = toggles.get(BALANCED_PAYE_TOGGLE, True)
    as_of = request_model.as_of or today or date.today()
    translator = get_translator(request_model.locale)

    with _profile_section("normalise_payload", timings):
        sources, deductions, adjustments = _build_inputs(request_model, config)

    result = calculate(
        sources,
        deductions,
        adjustments,
        config,
        as_of=as_of,
        band_table=request_model.band_table,
        balanced_paye=balanced_paye,
        translator=translator,
        timings=timings,
    )

    if timings is not None and overall_start is not None:
        timings["total"] = perf_counter() - overall_start
        _LOGGER.debug(
            "calculate_tax timings (ms): %s",
            {name: round(duration * 1000, 3) for name, duration in timings.items()},
        )

    response_model = CalculationResponse.model_validate(
        _serialise_result(result, config, translator, balanced_paye=balanced_paye)
    )
    return response_model.model_dump(mode="json", exclude_none=True)


__all__ = ["BALANCED_PAYE_TOGGLE", "calculate", "calculate_tax"]
