"""Helpers for normalising incoming calculation requests."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from typing import Any

from flask import Request
from werkzeug.exceptions import BadRequest

from uktax.backend.app.localization import normalise_locale
from uktax.backend.app.models import parse_uk_date


def _resolve_locale(req: Request, payload: dict[str, Any]) -> None:
    """Populate the locale field in ``payload`` based on hints in ``req``."""

    locale = payload.get("locale")
    if isinstance(locale, str) and locale.strip():
        payload["locale"] = normalise_locale(locale)
        return

    locale_param = req.args.get("locale")
    if locale_param:
        payload["locale"] = normalise_locale(locale_param)
        return

    accept_language = req.headers.get("Accept-Language")
    if accept_language:
        primary = accept_language.split(",")[0].split(";")[0].strip()
        if primary:
            payload["locale"] = normalise_locale(primary)


def parse_calculation_payload(req: Request) -> dict[str, Any]:
    """Extract and validate a JSON payload from ``req``."""

    data = req.get_json(silent=True)
    if data is None:
        raise BadRequest("Request body must be valid JSON")
    if not isinstance(data, Mapping):
        raise BadRequest("Request JSON must be an object")

    payload = dict(data)
    _resolve_locale(req, payload)

    return payload


def parse_date_argument(req: Request, name: str, *, required: bool = False) -> date | None:
    """Read an ISO or UK-format date from the query string."""

    raw = req.args.get(name)
    try:
        value = parse_uk_date(raw)
    except ValueError as exc:
        raise BadRequest(f"Query parameter '{name}': {exc}") from exc
    if value is None and required:
        raise BadRequest(f"Query parameter '{name}' is required")
    return value


__all__ = ["parse_calculation_payload", "parse_date_argument"]
