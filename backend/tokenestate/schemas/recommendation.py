from enum import Enum
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from tokenestate.schemas.property import PropertyResponse

MAX_REASONS = 3

# Used whenever no scoring rule produced a specific reason
GENERIC_REASONS = ("Solid investment opportunity", "Available for fractional ownership")


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def normalize_reasons(reasons: Any) -> List[str]:
    """Keep the first three non-blank reason strings; never return an empty list."""
    cleaned: List[str] = []
    if isinstance(reasons, (list, tuple)):
        cleaned = [str(r).strip() for r in reasons if isinstance(r, str) and r.strip()]
    if not cleaned:
        cleaned = list(GENERIC_REASONS)
    return cleaned[:MAX_REASONS]


class RiskTolerance(str, Enum):
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Risk tolerance each risk level is suited for
RISK_LEVEL_FOR_TOLERANCE = {
    RiskTolerance.CONSERVATIVE: RiskLevel.LOW,
    RiskTolerance.MODERATE: RiskLevel.MEDIUM,
    RiskTolerance.AGGRESSIVE: RiskLevel.HIGH,
}


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InvestmentRange(_CamelModel):
    min: float = Field(ge=0)
    max: float = Field(ge=0)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_order(self) -> "InvestmentRange":
        if self.min > self.max:
            raise ValueError(f"investment range min ({self.min}) exceeds max ({self.max})")
        return self


class InvestorProfile(_CamelModel):
    """
    Investment preferences derived from a user's history.

    Computed per request, never persisted. Parsing is strict: the five fields
    below and nothing else.
    """
    preferred_investment_range: InvestmentRange
    risk_tolerance: RiskTolerance
    preferred_property_types: List[str]
    preferred_locations: List[str]
    investment_goals: List[str]

    model_config = ConfigDict(extra="forbid")

    @field_validator("risk_tolerance", mode="before")
    @classmethod
    def _lower_risk_tolerance(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("preferred_property_types", "preferred_locations", "investment_goals")
    @classmethod
    def _strip_labels(cls, values: List[str]) -> List[str]:
        return [v.strip() for v in values if v and v.strip()]


class ScoredProperty(_CamelModel):
    """
    One scored candidate, as produced by either the inference service or the
    fallback scorer. Out-of-range numbers are clamped, NaN and infinity are
    rejected, reasons are capped at three.
    """
    property_id: int
    score: float = Field(allow_inf_nan=False)
    reasons: List[str] = Field(default_factory=lambda: list(GENERIC_REASONS))
    risk_level: RiskLevel
    match_percentage: float = Field(allow_inf_nan=False)

    model_config = ConfigDict(extra="ignore")

    @field_validator("risk_level", mode="before")
    @classmethod
    def _lower_risk_level(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("score", "match_percentage")
    @classmethod
    def _clamp_percent(cls, value: float) -> float:
        return clamp(value, 0.0, 100.0)

    @field_validator("reasons", mode="before")
    @classmethod
    def _normalize_reasons(cls, value: Any) -> List[str]:
        return normalize_reasons(value)


class PropertyRecommendation(_CamelModel):
    property: PropertyResponse
    score: float = Field(ge=0, le=100)
    reasons: List[str]
    risk_level: RiskLevel
    match_percentage: float = Field(ge=0, le=100)


class RecommendationsResponse(_CamelModel):
    """Response wrapper for recommendations that includes request_id for log correlation."""
    request_id: str
    items: List[PropertyRecommendation]


class ExplanationResponse(_CamelModel):
    property_id: int
    explanation: str
