"""Pydantic models describing the public API surface."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

__all__ = [
    "AdjustmentInput",
    "AdjustmentLine",
    "CalculationRequest",
    "CalculationResponse",
    "DeductionInput",
    "IncomeSourceInput",
    "ProjectionLine",
    "ResponseMeta",
    "SourceDetailLine",
    "StepLine",
    "Summary",
    "SummaryLabels",
    "format_validation_error",
    "parse_uk_date",
]

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y")


def parse_uk_date(value: Any) -> date | None:
    """Parse ISO or UK day-first dates; blank values become ``None``."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date '{text}' (use YYYY-MM-DD or DD/MM/YYYY)")


class IncomeSourceInput(BaseModel):
    """Income stream as supplied by the caller."""

    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    name: str = ""
    income_to_date: float = Field(default=0.0, ge=0)
    is_regular: bool = True
    start_date: date | None = None
    end_date: date | None = None
    periods_paid: float | None = Field(default=None, ge=0)
    projected_income: float | None = Field(default=None, ge=0)
    tax_paid: float | None = Field(default=None, ge=0)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_dates(cls, value: Any) -> date | None:
        return parse_uk_date(value)

    @field_validator("name", mode="before")
    @classmethod
    def _normalise_name(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @model_validator(mode="after")
    def _check_window(self) -> "IncomeSourceInput":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class DeductionInput(BaseModel):
    """Flat deduction entry."""

    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    description: str = ""
    amount: float = Field(default=0.0, ge=0)
    category: str = "other"


class AdjustmentInput(BaseModel):
    """Additional tax owed, as a direct amount or as extra taxable income."""

    model_config = ConfigDict(extra="forbid")

    id: str | None = None
    description: str = ""
    amount: float = 0.0
    category: str = "other"
    kind: str | None = None

    @field_validator("kind", mode="before")
    @classmethod
    def _normalise_kind(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip().lower().replace("-", "_")
        if not text:
            return None
        if text not in {"direct_tax", "taxable_income"}:
            raise ValueError("kind must be 'direct_tax' or 'taxable_income'")
        return text


class CalculationRequest(BaseModel):
    """Complete payload accepted by the calculation endpoint."""

    model_config = ConfigDict(extra="forbid")

    year: int | None = Field(default=None, ge=0)
    locale: str = Field(default="en")
    as_of: date | None = None
    band_table: str | None = None
    sources: list[IncomeSourceInput] = Field(default_factory=list)
    deductions: list[DeductionInput] = Field(default_factory=list)
    adjustments: list[AdjustmentInput] = Field(default_factory=list)
    toggles: dict[str, bool] = Field(default_factory=dict)

    @field_validator("locale", mode="before")
    @classmethod
    def _normalise_locale(cls, value: Any) -> str:
        if value is None:
            return "en"
        text = str(value).strip()
        return text or "en"

    @field_validator("as_of", mode="before")
    @classmethod
    def _parse_as_of(cls, value: Any) -> date | None:
        return parse_uk_date(value)

    @field_validator("band_table", mode="before")
    @classmethod
    def _normalise_band_table(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip().lower()
        return text or None

    @field_validator("sources", "deductions", "adjustments", mode="before")
    @classmethod
    def _normalise_lists(cls, value: Any) -> Any:
        if value is None:
            return []
        return value

    @field_validator("toggles", mode="before")
    @classmethod
    def _normalise_toggles(cls, value: Any) -> Mapping[str, Any]:
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return value
        raise TypeError(
            "Toggles section must be an object mapping identifiers to booleans"
        )

    @field_validator("toggles", mode="after")
    @classmethod
    def _coerce_toggles(cls, value: Mapping[str, Any]) -> dict[str, bool]:
        return {str(key): bool(raw) for key, raw in value.items()}


class SummaryLabels(BaseModel):
    """Localized labels for summary fields."""

    model_config = ConfigDict(extra="forbid")

    total_income: str
    personal_allowance: str
    total_deductions: str
    taxable_income: str
    tax_due_on_income: str
    adjustment_tax: str
    final_tax_due: str
    tax_paid: str
    net_position: str
    marginal_rate: str


class Summary(BaseModel):
    """Aggregated calculation results."""

    model_config = ConfigDict(extra="forbid")

    total_income: float
    personal_allowance: float
    taxable_before_deductions: float
    total_deductions: float
    taxable_after_deductions: float
    tax_due_on_income: float
    adjustment_tax: float
    additional_taxable_income: float
    final_taxable_income: float
    final_tax_due: float
    tax_paid: float
    net_position: float
    status: str
    status_label: str
    marginal_rate: float
    marginal_rate_label: str
    labels: SummaryLabels


class ProjectionLine(BaseModel):
    """Per-source projection as surfaced in the response."""

    model_config = ConfigDict(extra="forbid")

    source_id: str
    income_to_date: float
    projected_income: float
    method: str
    total_periods: float | None = None
    periods_worked: float | None = None
    first_period_fraction: float | None = None
    monthly_rate: float | None = None


class SourceDetailLine(BaseModel):
    """Per-source allocation of allowance and tax."""

    model_config = ConfigDict(extra="forbid")

    source_id: str
    name: str
    is_regular: bool
    income: float
    allowance_used: float
    taxable_income: float
    tax_due: float
    tax_paid: float
    difference: float
    tax_paid_basis: str
    note: str


class AdjustmentLine(BaseModel):
    """Tax attributed to a single adjustment."""

    model_config = ConfigDict(extra="forbid")

    adjustment_id: str
    description: str
    category: str
    kind: str
    amount: float
    tax: float


class StepLine(BaseModel):
    """One step of the derivation trail."""

    model_config = ConfigDict(extra="forbid")

    key: str
    title: str
    lines: list[str]


class ResponseMeta(BaseModel):
    """Metadata returned alongside the calculation output."""

    model_config = ConfigDict(extra="forbid")

    year: int
    locale: str
    as_of: date
    band_table: str
    balanced_paye: bool


class CalculationResponse(BaseModel):
    """Full response payload produced by the calculation service."""

    model_config = ConfigDict(extra="forbid")

    summary: Summary
    projections: list[ProjectionLine]
    sources: list[SourceDetailLine]
    adjustments: list[AdjustmentLine]
    steps: list[StepLine]
    meta: ResponseMeta


def format_validation_error(error: ValidationError) -> str:
    """Return a concise human-readable description of validation issues."""

    messages: list[str] = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue.get("loc", ()))
        message = issue.get("msg", "Invalid value")
        if "greater than or equal to 0" in message.lower():
            message = "value cannot be negative"
        if location:
            messages.append(f"{location}: {message}")
        else:
            messages.append(message)

    details = "; ".join(messages) if messages else str(error)
    return f"Invalid calculation payload: {details}"
