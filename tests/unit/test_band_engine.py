"""Unit coverage for the progressive band engine."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from uktax.backend.app.services.calculators.utils import (
    band_slices,
    calculate_progressive_tax,
    format_money,
    format_percentage,
    incremental_tax,
    marginal_rate,
    tax_on_slice,
)
from uktax.backend.config.year_config import (
    BandTable,
    ConfigurationError,
    TaxBand,
    TaxYearConfiguration,
)


@pytest.fixture()
def ruk(config_2025: TaxYearConfiguration):
    return config_2025.band_table("ruk").bands


@pytest.fixture()
def scottish(config_2025: TaxYearConfiguration):
    return config_2025.band_table("scottish").bands


@pytest.mark.parametrize(
    ("taxable", "expected"),
    [
        (0, 0),
        (-500, 0),
        (37_430, 7_486),
        (87_430, 27_432),
        (125_140, 42_516),
        (150_000, 42_516 + 24_860 * 0.45),
    ],
)
def test_calculate_progressive_tax(ruk, taxable: float, expected: float) -> None:
    assert calculate_progressive_tax(taxable, ruk) == pytest.approx(expected)


def test_scottish_table_is_a_data_parameter(scottish) -> None:
    assert calculate_progressive_tax(37_430, scottish) == pytest.approx(9_028.31)


def test_tax_on_slice_starts_part_way_through_the_bands(ruk) -> None:
    # 7,430 already used: 30,270 left at 20%, the rest at 40%.
    assert tax_on_slice(35_000, 7_430, ruk) == pytest.approx(30_270 * 0.2 + 4_730 * 0.4)


@pytest.mark.parametrize("split", [1_000, 37_700, 60_000, 124_000])
def test_tax_on_slice_is_additive(ruk, split: float) -> None:
    whole = tax_on_slice(140_000, 0, ruk)
    parts = tax_on_slice(split, 0, ruk) + tax_on_slice(140_000 - split, split, ruk)

    assert parts == pytest.approx(whole)


def test_progressive_tax_is_non_decreasing_and_continuous(ruk) -> None:
    previous = 0.0
    for amount in range(0, 200_001, 2_500):
        current = calculate_progressive_tax(amount, ruk)
        assert current >= previous
        previous = current

    for band in ruk[:-1]:
        below = calculate_progressive_tax(band.limit - 0.01, ruk)
        above = calculate_progressive_tax(band.limit + 0.01, ruk)
        assert 0 <= above - below < 0.01


def test_marginal_rate_at_and_around_limits(ruk) -> None:
    assert marginal_rate(0, ruk) == 0.20
    assert marginal_rate(37_699.99, ruk) == 0.20
    assert marginal_rate(37_700, ruk) == 0.40
    assert marginal_rate(125_140, ruk) == 0.45
    assert marginal_rate(10_000_000, ruk) == 0.45


def test_incremental_tax_spans_band_boundaries(ruk) -> None:
    assert incremental_tax(37_000, 1_000, ruk) == pytest.approx(700 * 0.2 + 300 * 0.4)
    assert incremental_tax(0, 0, ruk) == 0


def test_band_slices_report_each_band_touched(ruk) -> None:
    slices = band_slices(50_000, 0, ruk)

    assert [band.label for band, _, _ in slices] == ["Basic Rate", "Higher Rate"]
    assert [amount for _, amount, _ in slices] == [37_700, 12_300]
    assert sum(tax for _, _, tax in slices) == pytest.approx(12_460)


def test_unordered_bands_are_rejected() -> None:
    bands = [
        TaxBand(upper_bound=50_000, rate=0.4, label="Higher"),
        TaxBand(upper_bound=20_000, rate=0.2, label="Basic"),
        TaxBand(upper_bound=None, rate=0.45, label="Additional"),
    ]

    with pytest.raises(ConfigurationError):
        tax_on_slice(1_000, 0, bands)


@pytest.mark.parametrize(
    "bands",
    [
        [],
        [TaxBand(upper_bound=20_000, rate=0.2, label="Basic")],
        [
            TaxBand(upper_bound=None, rate=0.2, label="Basic"),
            TaxBand(upper_bound=None, rate=0.4, label="Higher"),
        ],
    ],
)
def test_tables_without_a_single_open_top_band_are_rejected(bands) -> None:
    with pytest.raises(ConfigurationError):
        tax_on_slice(1_000, 0, bands)


def test_band_table_model_validates_ordering() -> None:
    with pytest.raises(ValidationError):
        BandTable.model_validate(
            {
                "label": "Broken",
                "bands": [
                    {"upper": 10_000, "rate": 0.2, "label": "Basic"},
                    {"upper": 5_000, "rate": 0.4, "label": "Higher"},
                    {"upper": None, "rate": 0.45, "label": "Additional"},
                ],
            }
        )


def test_format_helpers() -> None:
    assert format_percentage(0.2) == "20%"
    assert format_percentage(0.45) == "45%"
    assert format_percentage(0.125) == "12.50%"
    assert format_money(7_486) == "£7,486.00"
    assert format_money(-1_946.004) == "-£1,946.00"
