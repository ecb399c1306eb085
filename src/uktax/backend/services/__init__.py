"""Service-layer helpers for the UK tax backend."""

from uktax.backend.app.services.calculation_service import calculate_tax

from .request_parser import parse_calculation_payload, parse_date_argument
from .response_builder import build_calculation_response

__all__ = [
    "calculate_tax",
    "parse_calculation_payload",
    "parse_date_argument",
    "build_calculation_response",
]
