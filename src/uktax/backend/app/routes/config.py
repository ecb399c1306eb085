"""Expose configuration metadata and PAYE period helpers to API clients.

These endpoints bridge the YAML-backed year configuration and any front-end so
forms can list band tables, deduction and adjustment categories, and offer
"months paid so far" choices without duplicating the period rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from flask import Blueprint, jsonify, request

from uktax.backend.app.http import ProblemResponse, not_found_problem
from uktax.backend.app.localization import (
    Translator,
    get_translator,
    normalise_locale,
)
from uktax.backend.app.services.calculators import (
    as_of_date_excluding_current_period,
    as_of_date_for_months_paid,
    current_period,
    months_paid_options,
)
from uktax.backend.app.services.calculators.periods import PayePeriod
from uktax.backend.config.year_config import (
    BandTable,
    TaxYearConfiguration,
    available_years,
    load_manifest,
    load_year_configuration,
)
from uktax.backend.services import parse_date_argument
from uktax.backend.version import get_project_version

blueprint = Blueprint("config", __name__, url_prefix="/api/v1/config")


@dataclass(frozen=True)
class YearRouteContext:
    """Common context shared by year-scoped configuration endpoints."""

    year: int
    locale: str
    translator: Translator
    configuration: TaxYearConfiguration


def _build_year_context(year: int, locale_hint: str | None) -> YearRouteContext | ProblemResponse:
    """Resolve configuration and localisation helpers for a given year."""

    try:
        configuration = load_year_configuration(year)
    except FileNotFoundError as exc:
        return not_found_problem(str(exc))

    translator = get_translator(normalise_locale(locale_hint))
    return YearRouteContext(
        year=year,
        locale=translator.locale,
        translator=translator,
        configuration=configuration,
    )


def get_configuration_metadata() -> dict[str, Any]:
    """Expose runtime metadata derived from the configuration manifest."""

    manifest = load_manifest()
    supported_years = list(manifest.supported_years)
    default_year = supported_years[-1] if supported_years else None
    return {
        "version": get_project_version(),
        "supported_years": supported_years,
        "default_year": default_year,
    }


def _serialise_band_table(table: BandTable) -> dict[str, Any]:
    return {
        "label": table.label,
        "bands": [
            {"upper": band.upper_bound, "rate": band.rate, "label": band.label}
            for band in table.bands
        ],
    }


def _serialise_year(config: TaxYearConfiguration, translator: Translator) -> dict[str, Any]:
    allowance = config.personal_allowance
    return {
        "year": config.year,
        "meta": dict(config.meta),
        "tax_year": {
            "start": config.start_date.isoformat(),
            "end": config.end_date.isoformat(),
        },
        "personal_allowance": {
            "amount": allowance.amount,
            "taper_threshold": allowance.taper_threshold,
            "taper_limit": allowance.taper_limit,
        },
        "band_tables": {
            name: _serialise_band_table(table) for name, table in config.band_tables.items()
        },
        "default_band_table": config.default_band_table,
        "deduction_categories": [
            {"id": entry.id, "label": translator(entry.label_key)}
            for entry in config.deduction_categories
        ],
        "adjustment_categories": [
            {"id": entry.id, "label": translator(entry.label_key), "kind": entry.kind}
            for entry in config.adjustment_categories
        ],
        "toggles": dict(config.toggles),
    }


def _serialise_period(period: PayePeriod) -> dict[str, Any]:
    return {
        "number": period.number,
        "start": period.start.isoformat(),
        "end": period.end.isoformat(),
        "length_days": period.length_days,
    }


@blueprint.get("/meta")
def get_application_metadata() -> tuple[Any, int]:
    """Expose lightweight application metadata such as the version identifier."""

    payload = get_configuration_metadata()
    return jsonify(payload), 200


@blueprint.get("/years")
def list_years() -> tuple[Any, int]:
    """Return all configured years with their tables and categories."""

    translator = get_translator(request.args.get("locale"))
    years = [
        _serialise_year(load_year_configuration(year), translator)
        for year in available_years()
    ]
    metadata = get_configuration_metadata()
    payload = {
        "years": years,
        "default_year": metadata["default_year"],
        "supported_years": metadata["supported_years"],
    }
    return jsonify(payload), 200


@blueprint.get("/<int:year>/months-paid-options")
def get_months_paid_options(year: int) -> tuple[Any, int]:
    """Offer "months paid so far" choices for a regular source's start date."""

    context = _build_year_context(year, request.args.get("locale"))
    if isinstance(context, ProblemResponse):
        return context.to_response()

    config = context.configuration
    year_start = config.start_date
    start = parse_date_argument(request, "start_date") or year_start
    today = parse_date_argument(request, "today") or date.today()

    options = [
        {
            "value": option.value,
            "label": option.label,
            "period_range": option.period_range,
            "as_of": as_of_date_for_months_paid(
                option.value, start, today, year_start
            ).isoformat(),
        }
        for option in months_paid_options(start, today, year_start)
    ]

    payload = {
        "year": context.year,
        "locale": context.locale,
        "start_date": start.isoformat(),
        "today": today.isoformat(),
        "current_period": _serialise_period(current_period(today, year_start)),
        "as_of_excluding_current_period": as_of_date_excluding_current_period(
            today, year_start
        ).isoformat(),
        "options": options,
    }
    return jsonify(payload), 200
