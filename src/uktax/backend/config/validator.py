"""Utilities for validating year configuration data and surfacing issues."""

from __future__ import annotations

import argparse
from collections import Counter
from typing import Iterable, Sequence

from .year_config import (
    AdjustmentCategory,
    BandTable,
    ConfigurationError,
    DeductionCategory,
    PersonalAllowanceConfig,
    TaxYearConfiguration,
    available_years,
    load_year_configuration,
)


def _format_scope(scope: str, message: str) -> str:
    return f"{scope}: {message}"


def _validate_band_table(scope: str, table: BandTable) -> list[str]:
    errors: list[str] = []
    bands = list(table.bands)

    if not bands:
        errors.append(_format_scope(scope, "no tax bands defined"))
        return errors

    labels = [band.label for band in bands]
    duplicates = [label for label, count in Counter(labels).items() if count > 1]
    if duplicates:
        errors.append(
            _format_scope(scope, f"duplicate band labels detected: {sorted(duplicates)}")
        )

    for band in bands:
        if not band.label.strip():
            errors.append(_format_scope(scope, "band labels must be non-empty strings"))
        if band.rate < 0 or band.rate > 1:
            errors.append(
                _format_scope(scope, f"rate {band.rate} for '{band.label}' must be between 0 and 1")
            )

    rates = [band.rate for band in bands]
    if rates != sorted(rates):
        errors.append(_format_scope(scope, "band rates should not decrease as income rises"))

    bounded = [band.upper_bound for band in bands if band.upper_bound is not None]
    if bounded != sorted(set(bounded)):
        errors.append(_format_scope(scope, "band limits must be strictly ascending"))

    if bands[-1].upper_bound is not None:
        errors.append(_format_scope(scope, "final band must be unbounded"))

    return errors


def _validate_personal_allowance(allowance: PersonalAllowanceConfig) -> list[str]:
    errors: list[str] = []
    scope = "income_tax.personal_allowance"

    expected_limit = allowance.taper_threshold + 2 * allowance.amount
    if abs(allowance.taper_limit - expected_limit) > 0.005:
        errors.append(
            _format_scope(
                scope,
                (
                    f"taper limit {allowance.taper_limit:g} should equal the threshold plus "
                    f"twice the allowance ({expected_limit:g})"
                ),
            )
        )

    return errors


def _validate_categories(
    scope: str,
    categories: Iterable[DeductionCategory | AdjustmentCategory],
) -> list[str]:
    errors: list[str] = []
    seen_ids: set[str] = set()

    for category in categories:
        if category.id in seen_ids:
            errors.append(
                _format_scope(scope, f"duplicate category identifier '{category.id}' detected")
            )
        else:
            seen_ids.add(category.id)

        if not category.label_key.strip():
            errors.append(
                _format_scope(scope, f"category '{category.id}' must define a label key")
            )

    return errors


def _validate_tax_year(config: TaxYearConfiguration) -> list[str]:
    errors: list[str] = []
    start = config.start_date
    end = config.end_date

    if start.day != 6:
        errors.append(_format_scope("tax_year", "PAYE years must start on the 6th"))

    expected_end = start.replace(year=start.year + 1, day=5)
    if end != expected_end:
        errors.append(
            _format_scope(
                "tax_year",
                f"end date {end.isoformat()} should be {expected_end.isoformat()}",
            )
        )

    if start.year != config.year:
        errors.append(
            _format_scope(
                "tax_year",
                f"start date year {start.year} does not match configured year {config.year}",
            )
        )

    return errors


def validate_year_configuration(config: TaxYearConfiguration) -> list[str]:
    """Return a list of validation issues for the provided configuration."""

    errors: list[str] = []

    errors.extend(_validate_tax_year(config))
    errors.extend(_validate_personal_allowance(config.personal_allowance))

    if config.default_band_table not in config.band_tables:
        errors.append(
            _format_scope(
                "income_tax.default_band_table",
                f"'{config.default_band_table}' is not a defined band table",
            )
        )

    for name, table in config.band_tables.items():
        errors.extend(_validate_band_table(f"income_tax.band_tables.{name}", table))

    errors.extend(_validate_categories("deductions.categories", config.deduction_categories))
    errors.extend(_validate_categories("adjustments.categories", config.adjustment_categories))

    return errors


def validate_all_years(years: Sequence[int] | None = None) -> dict[int, list[str]]:
    """Validate all configured years and return issues keyed by year."""

    targets = years or available_years()
    results: dict[int, list[str]] = {}

    for year in targets:
        config = load_year_configuration(year)
        results[int(year)] = validate_year_configuration(config)

    return results


def _build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description=(
            "Validate configured tax years and report issues helpful to contributors."
        )
    )
    parser.add_argument(
        "years",
        nargs="*",
        type=int,
        help="Specific years to validate (defaults to all configured years)",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for running validations from the command line."""

    parser = _build_argument_parser()
    args = parser.parse_args(argv)
    years = args.years or available_years()

    if not years:
        parser.print_help()
        return 1

    exit_code = 0

    for year in years:
        try:
            config = load_year_configuration(year)
        except (FileNotFoundError, ConfigurationError) as error:
            print(f"[{year}] failed to load configuration: {error}")
            exit_code = 1
            continue

        issues = validate_year_configuration(config)
        if issues:
            exit_code = 1
            print(f"[{year}] {len(issues)} issue(s) found:")
            for issue in issues:
                print(f"  - {issue}")
        else:
            print(f"[{year}] configuration OK")

    return exit_code


__all__ = ["main", "validate_all_years", "validate_year_configuration"]


if __name__ == "__main__":  # pragma: no cover - CLI invocation
    raise SystemExit(main())
