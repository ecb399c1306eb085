"""Typed domain models shared across the calculation services.

Caller-supplied inputs (income sources, deductions and adjustments) are frozen
Pydantic models so the engine can never mutate them; derived results are
lightweight frozen dataclasses assembled by the calculators and serialised by
the service layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .api import (
    AdjustmentInput,
    AdjustmentLine,
    CalculationRequest,
    CalculationResponse,
    DeductionInput,
    IncomeSourceInput,
    ProjectionLine,
    ResponseMeta,
    SourceDetailLine,
    StepLine,
    Summary,
    SummaryLabels,
    format_validation_error,
    parse_uk_date,
)

__all__ = [
    "Adjustment",
    "AdjustmentInput",
    "AdjustmentLine",
    "AdjustmentResult",
    "CalculationRequest",
    "CalculationResponse",
    "CalculationResult",
    "Deduction",
    "DeductionInput",
    "DerivationStep",
    "IncomeSource",
    "IncomeSourceInput",
    "Projection",
    "ProjectionLine",
    "ResponseMeta",
    "SourceDetailLine",
    "SourceTaxDetail",
    "StepLine",
    "Summary",
    "SummaryLabels",
    "format_validation_error",
    "parse_uk_date",
]


class _FrozenModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class IncomeSource(_FrozenModel):
    """One income stream for the year.

    ``start_date``/``end_date`` and ``periods_paid`` only matter for regular
    sources; a one-off source is always taken at face value.
    """

    id: str
    name: str = ""
    income_to_date: float = Field(default=0.0, ge=0)
    is_regular: bool = True
    start_date: date | None = None
    end_date: date | None = None
    periods_paid: float | None = None
    projected_income: float | None = Field(default=None, ge=0)
    tax_paid: float | None = Field(default=None, ge=0)

    @property
    def label(self) -> str:
        return self.name or self.id


class Deduction(_FrozenModel):
    """Flat reduction applied once to aggregate taxable income."""

    id: str = ""
    description: str = ""
    amount: float = Field(default=0.0, ge=0)
    category: str = "other"


class Adjustment(_FrozenModel):
    """Additional tax owed, either as a direct amount or as extra income.

    ``kind`` is resolved from the category's configured kind when omitted.
    """

    id: str = ""
    description: str = ""
    amount: float = 0.0
    category: str = "other"
    kind: str | None = None

    @model_validator(mode="after")
    def _validate_kind(self) -> "Adjustment":
        if self.kind is not None and self.kind not in {"direct_tax", "taxable_income"}:
            raise ValueError(f"Unsupported adjustment kind '{self.kind}'")
        return self


@dataclass(frozen=True, slots=True)
class Projection:
    """Projected (or actual) full-year income for a single source."""

    source_id: str
    income_to_date: float
    projected_income: float
    method: str
    total_periods: float | None = None
    periods_worked: float | None = None
    first_period_fraction: float | None = None
    monthly_rate: float | None = None
    start_period: int | None = None
    whole_periods: int | None = None


@dataclass(frozen=True, slots=True)
class SourceTaxDetail:
    """Order-dependent attribution of allowance and tax to one source."""

    source_id: str
    name: str
    is_regular: bool
    income: float
    allowance_used: float
    taxable_income: float
    band_start: float
    tax_due: float
    tax_paid: float
    tax_paid_basis: str

    @property
    def difference(self) -> float:
        return self.tax_paid - self.tax_due


@dataclass(frozen=True, slots=True)
class AdjustmentResult:
    """Tax contribution of a single adjustment."""

    adjustment_id: str
    description: str
    category: str
    kind: str
    amount: float
    position_before: float
    tax: float


@dataclass(frozen=True, slots=True)
class DerivationStep:
    """One titled step of the human-readable derivation."""

    key: str
    title: str
    lines: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CalculationResult:
    """Complete, internally consistent result of one calculation call."""

    as_of: date
    band_table: str
    total_income: float
    personal_allowance: float
    projections: tuple[Projection, ...]
    source_details: tuple[SourceTaxDetail, ...]
    total_deductions: float
    taxable_before_deductions: float
    taxable_after_deductions: float
    tax_due_on_income: float
    adjustments: tuple[AdjustmentResult, ...]
    adjustment_tax: float
    additional_taxable_income: float
    final_taxable_income: float
    final_tax_due: float
    tax_paid: float
    marginal_rate: float
    steps: tuple[DerivationStep, ...] = field(default_factory=tuple)

    @property
    def net_position(self) -> float:
        return self.tax_paid - self.final_tax_due

    @property
    def status(self) -> str:
        position = round(self.net_position, 2)
        if position > 0:
            return "refund"
        if position < 0:
            return "owed"
        return "balanced"
