"""Progressive band engine and rounding helpers for calculator modules."""

from __future__ import annotations

from collections.abc import Sequence

from uktax.backend.config.year_config import TaxBand, validate_band_sequence


def format_percentage(value: float) -> str:
    """Return a human-readable percentage label for ``value``."""

    percentage = round(value * 100, 4)
    if float(int(percentage)) == percentage:
        return f"{int(percentage)}%"
    return f"{percentage:.2f}%"


def format_money(value: float) -> str:
    """Return ``value`` as a pounds label with thousands separators."""

    rounded = round_currency(value)
    sign = "-" if rounded < 0 else ""
    return f"{sign}£{abs(rounded):,.2f}"


def band_slices(
    amount: float, start_position: float, bands: Sequence[TaxBand]
) -> list[tuple[TaxBand, float, float]]:
    """Split ``amount`` across the bands it occupies from ``start_position``.

    Returns ``(band, amount taxed in band, tax)`` for each band touched. Each
    band offers ``limit - position`` of room (never negative) and the position
    advances by whatever the band absorbed.
    """

    validate_band_sequence(bands)
    slices: list[tuple[TaxBand, float, float]] = []
    if amount <= 0:
        return slices

    remaining = amount
    position = start_position if start_position > 0 else 0.0

    for band in bands:
        room = band.limit - position
        if room <= 0:
            continue
        taxed = min(remaining, room)
        slices.append((band, taxed, taxed * band.rate))
        remaining -= taxed
        position += taxed
        if remaining <= 0:
            break

    return slices


def tax_on_slice(amount: float, start_position: float, bands: Sequence[TaxBand]) -> float:
    """Tax a slice of ``amount`` taxable income beginning at ``start_position``.

    Splitting a slice anywhere yields the same total tax, which is what lets
    sources and adjustments be taxed one after another.
    """

    return sum(tax for _, _, tax in band_slices(amount, start_position, bands))


def calculate_progressive_tax(amount: float, bands: Sequence[TaxBand]) -> float:
    """Calculate progressive tax for ``amount`` of taxable income."""

    if amount <= 0:
        return 0.0
    return tax_on_slice(amount, 0.0, bands)


def incremental_tax(position: float, amount: float, bands: Sequence[TaxBand]) -> float:
    """Extra tax from stacking ``amount`` on top of ``position``.

    Computed as the difference of two full evaluations so a slice crossing a
    band boundary is taxed at both rates.
    """

    base = position if position > 0 else 0.0
    return calculate_progressive_tax(base + amount, bands) - calculate_progressive_tax(
        base, bands
    )


def marginal_rate(position: float, bands: Sequence[TaxBand]) -> float:
    """Return the rate applying to the next pound above ``position``."""

    validate_band_sequence(bands)
    for band in bands:
        if band.limit > position:
            return band.rate
    return bands[-1].rate


def band_for_position(position: float, bands: Sequence[TaxBand]) -> TaxBand:
    """Return the band the next pound above ``position`` falls into."""

    validate_band_sequence(bands)
    for band in bands:
        if band.limit > position:
            return band
    return bands[-1]


def round_currency(value: float) -> float:
    """Round monetary amounts to two decimals."""

    return round(value, 2)


def round_rate(value: float) -> float:
    """Round rate values to four decimals."""

    return round(value, 4)


__all__ = [
    "band_for_position",
    "band_slices",
    "calculate_progressive_tax",
    "format_money",
    "format_percentage",
    "incremental_tax",
    "marginal_rate",
    "round_currency",
    "round_rate",
    "tax_on_slice",
]
