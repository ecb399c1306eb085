"""Unit tests for the calculation service."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import pytest

from uktax.backend.app.models import (
    Adjustment,
    CalculationRequest,
    Deduction,
    IncomeSource,
)
from uktax.backend.app.services.calculation_service import calculate, calculate_tax
from uktax.backend.config.year_config import TaxYearConfiguration

AS_OF = date(2025, 9, 30)


def _payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "year": 2025,
        "as_of": "2025-09-30",
        "sources": [
            {"id": "job", "name": "Employer", "income_to_date": 25_000, "start_date": "2025-04-06"}
        ],
    }
    payload.update(overrides)
    return payload


def test_calculate_runs_the_full_pipeline(config_2025: TaxYearConfiguration) -> None:
    sources = [
        IncomeSource(id="a", income_to_date=10_000, periods_paid=6),
        IncomeSource(id="b", income_to_date=7_500, periods_paid=6),
    ]

    result = calculate(sources, [], [], config_2025, as_of=AS_OF)

    assert result.total_income == 35_000
    assert result.personal_allowance == 12_570
    assert result.tax_due_on_income == pytest.approx(4_486)
    assert result.final_tax_due == pytest.approx(4_486)
    assert result.tax_paid == pytest.approx(4_486)
    assert result.status == "balanced"
    assert result.band_table == "ruk"
    assert [step.key for step in result.steps] == [
        "total_income",
        "personal_allowance",
        "allocation",
        "deductions",
        "tax_on_income",
        "adjustments",
        "summary",
    ]


def test_calculate_never_mutates_inputs(config_2025: TaxYearConfiguration) -> None:
    sources = (IncomeSource(id="a", income_to_date=20_000, start_date=date(2025, 4, 6)),)
    deductions = (Deduction(amount=500),)
    adjustments = (Adjustment(amount=100, kind="direct_tax"),)
    snapshot = [item.model_dump() for item in (*sources, *deductions, *adjustments)]

    first = calculate(sources, deductions, adjustments, config_2025, as_of=AS_OF)
    second = calculate(sources, deductions, adjustments, config_2025, as_of=AS_OF)

    assert [item.model_dump() for item in (*sources, *deductions, *adjustments)] == snapshot
    assert first == second


def test_reordering_sources_keeps_aggregate_tax(config_2025: TaxYearConfiguration) -> None:
    sources = [
        IncomeSource(id="a", income_to_date=30_000, projected_income=60_000),
        IncomeSource(id="b", income_to_date=5_000, is_regular=False),
    ]

    forward = calculate(sources, [], [], config_2025, as_of=AS_OF)
    reverse = calculate(list(reversed(sources)), [], [], config_2025, as_of=AS_OF)

    assert forward.tax_due_on_income == pytest.approx(reverse.tax_due_on_income)
    assert forward.source_details[0].tax_due != reverse.source_details[1].tax_due


def test_calculate_uses_the_selected_band_table(config_2025: TaxYearConfiguration) -> None:
    sources = [IncomeSource(id="a", income_to_date=1, projected_income=50_000)]

    result = calculate(sources, [], [], config_2025, as_of=AS_OF, band_table="scottish")

    assert result.tax_due_on_income == pytest.approx(9_028.31)


def test_calculate_rejects_unknown_band_table(config_2025: TaxYearConfiguration) -> None:
    with pytest.raises(ValueError, match="Unknown band table"):
        calculate([], [], [], config_2025, as_of=AS_OF, band_table="welsh")


def test_calculate_with_no_sources(config_2025: TaxYearConfiguration) -> None:
    result = calculate([], [], [], config_2025, as_of=AS_OF)

    assert result.total_income == 0
    assert result.final_tax_due == 0
    assert result.status == "balanced"


def test_calculate_tax_returns_rounded_response() -> None:
    result = calculate_tax(_payload())

    summary = result["summary"]
    assert summary["total_income"] == 50_000
    assert summary["final_tax_due"] == 7_486
    assert summary["status"] == "balanced"
    assert summary["status_label"] == "Balanced"
    assert summary["labels"]["final_tax_due"] == "Total tax due"
    assert result["meta"] == {
        "year": 2025,
        "locale": "en",
        "as_of": "2025-09-30",
        "band_table": "ruk",
        "balanced_paye": True,
    }

    projection = result["projections"][0]
    assert projection["method"] == "auto"
    assert projection["periods_worked"] == 6
    assert projection["monthly_rate"] == pytest.approx(4_166.67)

    source = result["sources"][0]
    assert source["tax_paid_basis"] == "balanced_paye"
    assert source["note"] == "assumed equal to tax due (balanced PAYE)"


def test_calculate_tax_builds_readable_steps() -> None:
    result = calculate_tax(_payload())
    steps = {step["key"]: step for step in result["steps"]}

    assert steps["total_income"]["title"] == "Step 1: Total income"
    assert steps["total_income"]["lines"][0] == (
        "Employer: £50,000.00 (£25,000.00 over 6.00 equivalent periods to 30/09/2025: "
        "100.0% of Period 1 + 5 full periods, £4,166.67 a period projected over 12.00 periods)"
    )
    assert steps["tax_on_income"]["lines"][0] == "£37,430.00 at 20% (Basic Rate) = £7,486.00"
    assert steps["deductions"]["lines"] == ["No deductions entered"]
    assert steps["summary"]["lines"][-1] == "Marginal rate on the next pound: 20% (Basic Rate)"


def test_steps_describe_mid_period_start() -> None:
    payload = _payload(
        as_of="2025-07-10",
        sources=[
            {"name": "Employer", "income_to_date": 7_000, "start_date": "21/04/2025"}
        ],
    )

    steps = {step["key"]: step for step in calculate_tax(payload)["steps"]}

    assert steps["total_income"]["lines"][0] == (
        "Employer: £23,000.00 (£7,000.00 over 3.50 equivalent periods to 10/07/2025: "
        "50.0% of Period 1 + 3 full periods, £2,000.00 a period projected over 11.50 periods)"
    )


def test_steps_describe_periods_paid() -> None:
    payload = _payload(
        sources=[{"name": "Employer", "income_to_date": 15_000, "periods_paid": 6}]
    )

    steps = {step["key"]: step for step in calculate_tax(payload)["steps"]}

    assert steps["total_income"]["lines"][0] == (
        "Employer: £30,000.00 (£15,000.00 over 6.00 periods paid from Period 1, "
        "£2,500.00 a period projected over 12.00 periods)"
    )


def test_taxable_before_deductions_reports_income_less_allowance() -> None:
    payload = _payload(
        sources=[{"id": "job", "income_to_date": 5_000, "projected_income": 8_000}]
    )

    summary = calculate_tax(payload)["summary"]

    assert summary["taxable_before_deductions"] == -4_570
    assert summary["taxable_after_deductions"] == 0
    assert summary["tax_due_on_income"] == 0


def test_calculate_tax_describes_taper() -> None:
    payload = _payload(
        sources=[{"id": "job", "income_to_date": 1, "projected_income": 110_000}]
    )

    steps = {step["key"]: step for step in calculate_tax(payload)["steps"]}

    assert steps["personal_allowance"]["lines"] == [
        "Income of £110,000.00 exceeds £100,000.00; the allowance of £12,570.00 "
        "is reduced by £5,000.00 to £7,570.00"
    ]


def test_balanced_paye_toggle_can_be_switched_off() -> None:
    result = calculate_tax(_payload(toggles={"balanced_paye": False}))

    assert result["meta"]["balanced_paye"] is False
    assert result["summary"]["tax_paid"] == 0
    assert result["summary"]["net_position"] == -7_486
    assert result["summary"]["status"] == "owed"
    assert result["sources"][0]["tax_paid_basis"] == "not_provided"


def test_adjustment_labels_fall_back_to_category() -> None:
    result = calculate_tax(
        _payload(adjustments=[{"amount": 300, "category": "underpayment"}])
    )

    adjustment = result["adjustments"][0]
    assert adjustment["description"] == "Underpayment from a previous year"
    assert adjustment["kind"] == "direct_tax"
    assert adjustment["tax"] == 300
    assert result["summary"]["final_tax_due"] == 7_786


def test_explicit_adjustment_kind_overrides_category() -> None:
    result = calculate_tax(
        _payload(adjustments=[{"amount": 1_000, "category": "other", "kind": "taxable_income"}])
    )

    assert result["adjustments"][0]["kind"] == "taxable_income"
    assert result["summary"]["adjustment_tax"] == pytest.approx(54 + 292)


def test_calculate_tax_accepts_request_models() -> None:
    request = CalculationRequest.model_validate(_payload())

    assert calculate_tax(request)["summary"]["final_tax_due"] == 7_486


def test_calculate_tax_defaults_year_and_as_of() -> None:
    payload = {
        "sources": [{"id": "job", "income_to_date": 25_000, "start_date": "2025-04-06"}]
    }

    result = calculate_tax(payload, today=date(2025, 9, 30))

    assert result["meta"]["year"] == 2025
    assert result["meta"]["as_of"] == "2025-09-30"
    assert result["summary"]["total_income"] == 50_000


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        (_payload(year=1999), "Unsupported tax year"),
        (_payload(band_table="welsh"), "Unknown band table"),
        (_payload(deductions=[{"amount": 10, "category": "pets"}]), "Unknown deduction"),
        (_payload(adjustments=[{"amount": 10, "category": "lottery"}]), "Unknown adjustment"),
        (
            _payload(sources=[{"id": "job", "income_to_date": -1}]),
            "value cannot be negative",
        ),
        (_payload(unexpected=True), "Invalid calculation payload"),
        (_payload(as_of="31/31/2025"), "Unrecognised date"),
        (
            _payload(
                adjustments=[{"amount": -5, "category": "untaxed_interest"}]
            ),
            "cannot be negative",
        ),
    ],
)
def test_calculate_tax_rejects_invalid_input(payload: dict[str, Any], message: str) -> None:
    with pytest.raises(ValueError, match=message):
        calculate_tax(payload)


def test_calculate_tax_rejects_non_mapping_payload() -> None:
    with pytest.raises(ValueError, match="mapping"):
        calculate_tax(["not", "a", "mapping"])  # type: ignore[arg-type]


def test_profiling_logs_timings(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("UKTAX_PROFILE_CALCULATIONS", "1")

    with caplog.at_level(logging.DEBUG, logger="uktax.backend.app.services.calculation_service"):
        calculate_tax(_payload())

    assert any("calculate_tax timings" in record.message for record in caplog.records)
