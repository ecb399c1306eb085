"""Utilities for serialising calculation responses."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Tuple

from flask import Response, jsonify

ResponseTuple = Tuple[Response, int]


def build_calculation_response(payload: Mapping[str, Any]) -> ResponseTuple:
    """Return a Flask JSON response for the calculation ``payload``.

    Results depend on the as-of date, so they are marked as not cacheable.
    """

    response = jsonify(payload)
    response.headers["Cache-Control"] = "no-store"
    return response, 200
