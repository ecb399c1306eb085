"""Pydantic models describing the tax year configuration schema."""

from __future__ import annotations

import math
from datetime import date
from typing import Any, Iterable, Mapping, Sequence

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
    model_validator,
)
from typing_extensions import Self


class ConfigurationError(ValueError):
    """Raised when configuration values violate schema expectations."""


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


ADJUSTMENT_KINDS = frozenset({"direct_tax", "taxable_income"})


class TaxBand(ImmutableModel):
    """A single progressive band with a cumulative upper limit."""

    upper_bound: float | None = Field(default=None, alias="upper")
    rate: float
    label: str

    @model_validator(mode="after")
    def _validate_values(self) -> TaxBand:
        if self.rate < 0 or self.rate > 1:
            raise ConfigurationError("Tax rates must be between 0 and 1")
        if self.upper_bound is not None and self.upper_bound <= 0:
            raise ConfigurationError("Upper bounds must be positive values")
        return self

    @property
    def limit(self) -> float:
        """Upper bound with the open top band expressed as infinity."""

        return math.inf if self.upper_bound is None else self.upper_bound


def validate_band_sequence(bands: Sequence[TaxBand]) -> None:
    """Reject band tables that do not partition ``[0, inf)``."""

    if not bands:
        raise ConfigurationError("At least one tax band must be defined")
    last_upper = 0.0
    for band in bands[:-1]:
        upper = band.upper_bound
        if upper is None:
            raise ConfigurationError("Only the final tax band may be unbounded")
        if upper <= last_upper:
            raise ConfigurationError("Tax bands must be in strictly ascending order")
        last_upper = upper
    if bands[-1].upper_bound is not None:
        raise ConfigurationError("Final tax band must have an open upper bound")


class BandTable(ImmutableModel):
    """Named progressive band table, e.g. the rUK or Scottish rates."""

    label: str
    bands: Sequence[TaxBand]

    @field_validator("bands", mode="before")
    @classmethod
    def _coerce_bands(cls, value: Any) -> Sequence[Any]:
        if isinstance(value, Iterable) and not isinstance(value, (str, Mapping)):
            return tuple(value)
        raise ConfigurationError("Band tables must define a list of 'bands'")

    @model_validator(mode="after")
    def _validate_bands(self) -> BandTable:
        validate_band_sequence(self.bands)
        return self


class PersonalAllowanceConfig(ImmutableModel):
    """Tax-free allowance with its high-income taper."""

    amount: float
    taper_threshold: float
    taper_limit: float

    @model_validator(mode="after")
    def _validate_values(self) -> PersonalAllowanceConfig:
        if self.amount < 0:
            raise ConfigurationError("Personal allowance must be non-negative")
        if self.taper_threshold < 0:
            raise ConfigurationError("Taper threshold must be non-negative")
        if self.taper_limit <= self.taper_threshold:
            raise ConfigurationError("Taper limit must exceed the taper threshold")
        return self


class DeductionCategory(ImmutableModel):
    """Flat deduction category offered to callers."""

    id: str
    label_key: str


class AdjustmentCategory(ImmutableModel):
    """Adjustment category and the way its amount is taxed."""

    id: str
    label_key: str
    kind: str

    @model_validator(mode="after")
    def _validate_kind(self) -> AdjustmentCategory:
        if self.kind not in ADJUSTMENT_KINDS:
            raise ConfigurationError(
                f"Adjustment kind must be one of: {', '.join(sorted(ADJUSTMENT_KINDS))}"
            )
        return self


def _coerce_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value in {0, "0", "false", "False", None}:
        return False
    if value in {1, "1", "true", "True"}:
        return True
    raise ConfigurationError("Boolean flags must be explicit true/false values")


class TaxYearConfiguration(ImmutableModel):
    """Structured representation of a tax year configuration."""

    year: int
    meta: Mapping[str, Any] = Field(default_factory=dict)
    start_date: date
    end_date: date
    personal_allowance: PersonalAllowanceConfig
    band_tables: Mapping[str, BandTable]
    default_band_table: str
    deduction_categories: Sequence[DeductionCategory] = Field(default_factory=tuple)
    adjustment_categories: Sequence[AdjustmentCategory] = Field(default_factory=tuple)
    toggles: Mapping[str, bool] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _flatten_sections(cls, data: Any) -> Mapping[str, Any]:
        if not isinstance(data, Mapping):
            raise ConfigurationError("Configuration file must define a mapping at the top level")

        prepared = dict(data)
        meta = prepared.get("meta")
        if meta is None:
            prepared["meta"] = {}
        elif not isinstance(meta, Mapping):
            raise ConfigurationError("'meta' section must be a mapping if provided")

        tax_year = prepared.pop("tax_year", None)
        if not isinstance(tax_year, Mapping):
            raise ConfigurationError("Configuration must include a 'tax_year' section")
        prepared["start_date"] = tax_year.get("start")
        prepared["end_date"] = tax_year.get("end")

        income_tax = prepared.pop("income_tax", None)
        if not isinstance(income_tax, Mapping):
            raise ConfigurationError("Configuration must include an 'income_tax' section")
        for section in ("personal_allowance", "band_tables", "default_band_table"):
            if section not in income_tax:
                raise ConfigurationError(
                    f"Income tax configuration requires a '{section}' section"
                )
            prepared[section] = income_tax[section]

        deductions = prepared.pop("deductions", None) or {}
        if not isinstance(deductions, Mapping):
            raise ConfigurationError("'deductions' section must be a mapping")
        prepared["deduction_categories"] = deductions.get("categories") or ()

        adjustments = prepared.pop("adjustments", None) or {}
        if not isinstance(adjustments, Mapping):
            raise ConfigurationError("'adjustments' section must be a mapping")
        prepared["adjustment_categories"] = adjustments.get("categories") or ()

        if prepared.get("toggles") is None:
            prepared["toggles"] = {}

        return prepared

    @field_validator("toggles", mode="before")
    @classmethod
    def _coerce_toggles(cls, value: Any) -> Mapping[str, bool]:
        if not isinstance(value, Mapping):
            raise ConfigurationError("'toggles' must be a mapping of flags")
        return {str(key): _coerce_boolean(flag) for key, flag in value.items()}

    @model_validator(mode="after")
    def _validate_year(self) -> Self:
        if self.end_date <= self.start_date:
            raise ConfigurationError("Tax year end date must follow its start date")
        if self.start_date.day != 6:
            raise ConfigurationError("PAYE tax years must start on the 6th of a month")
        if not self.band_tables:
            raise ConfigurationError("At least one band table must be defined")
        if self.default_band_table not in self.band_tables:
            raise ConfigurationError(
                f"Default band table '{self.default_band_table}' is not defined"
            )
        return self

    def band_table(self, name: str | None = None) -> BandTable:
        """Return the named band table, or the default one."""

        key = name or self.default_band_table
        try:
            return self.band_tables[key]
        except KeyError as exc:
            available = ", ".join(sorted(self.band_tables))
            raise ValueError(
                f"Unknown band table '{key}' (available: {available})"
            ) from exc

    def adjustment_kind(self, category: str) -> str:
        """Return the configured kind for an adjustment category."""

        for entry in self.adjustment_categories:
            if entry.id == category:
                return entry.kind
        raise ValueError(f"Unknown adjustment category '{category}'")

    @computed_field
    @property
    def deduction_category_ids(self) -> tuple[str, ...]:
        return tuple(entry.id for entry in self.deduction_categories)

    @computed_field
    @property
    def adjustment_category_ids(self) -> tuple[str, ...]:
        return tuple(entry.id for entry in self.adjustment_categories)


class TaxYearManifestEntry(ImmutableModel):
    """Entry describing a supported tax year in the manifest."""

    year: int
    filename: str | None = None
    status: str = "active"
    notes_url: str | None = None

    @computed_field
    @property
    def resolved_filename(self) -> str:
        return self.filename or f"{self.year}.yaml"


class TaxYearManifest(ImmutableModel):
    """Manifest describing the available tax year configuration files."""

    years: Sequence[TaxYearManifestEntry]

    @model_validator(mode="after")
    def _validate_years(self) -> TaxYearManifest:
        seen: set[int] = set()
        for entry in self.years:
            if entry.year in seen:
                raise ConfigurationError(
                    f"Duplicate year {entry.year} declared in the configuration manifest"
                )
            seen.add(entry.year)
        return self

    def get_entry(self, year: int) -> TaxYearManifestEntry:
        for entry in self.years:
            if entry.year == year:
                return entry
        raise KeyError(year)

    @computed_field
    @property
    def supported_years(self) -> tuple[int, ...]:
        return tuple(sorted(entry.year for entry in self.years))


__all__ = [
    "ADJUSTMENT_KINDS",
    "AdjustmentCategory",
    "BandTable",
    "ConfigurationError",
    "DeductionCategory",
    "ImmutableModel",
    "PersonalAllowanceConfig",
    "TaxBand",
    "TaxYearConfiguration",
    "TaxYearManifest",
    "TaxYearManifestEntry",
    "ValidationError",
    "validate_band_sequence",
]
