"""
Rule-based property scoring used when the inference service is unavailable.

Pure and deterministic: no I/O, no randomness, and equal inputs always give
equal output. Each rule adds a fixed bonus and, when it fires, one
human-readable reason:

- budget fit:   min investment inside the preferred range (inclusive)
- type match:   property type equals a preferred type (case-insensitive)
- location:     a preferred location fragment occurs in the property location
- risk match:   ROI-derived risk level matches the profile's risk tolerance
- liquidity:    more than half of the tokens are still available

Scores start from a base, are clamped to [0, 100] and the reasons list is
capped at three (generic reasons are supplied when no rule fired).
"""
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Tuple

from tokenestate.core.config import settings
from tokenestate.schemas.recommendation import (
    InvestorProfile,
    RiskLevel,
    RISK_LEVEL_FOR_TOLERANCE,
    ScoredProperty,
    clamp,
    normalize_reasons,
)

# ROI thresholds (percent) separating the three risk levels
HIGH_RISK_ROI = Decimal("15")
MEDIUM_RISK_ROI = Decimal("10")

# Share of total tokens that must remain for the liquidity bonus
LIQUIDITY_RATIO = Decimal("0.5")

REASON_BUDGET = "Investment amount fits your preferred range"
REASON_TYPE = "Matches your preferred property type"
REASON_LOCATION = "Located in your preferred area"
REASON_LIQUIDITY = "Plenty of tokens still available for purchase"
RISK_REASONS = {
    RiskLevel.HIGH: "High ROI potential aligns with your risk tolerance",
    RiskLevel.MEDIUM: "Balanced risk-return profile",
    RiskLevel.LOW: "Low-risk investment suitable for conservative approach",
}

_NUMBER_CHARS = re.compile(r"[^0-9.\-]")


@dataclass(frozen=True)
class ScoringWeights:
    """Point values and cutoffs for the fallback scorer."""
    base_score: float = 50.0
    budget_bonus: float = 20.0
    type_bonus: float = 15.0
    location_bonus: float = 15.0
    risk_bonus: float = 10.0
    liquidity_bonus: float = 10.0
    min_score: Optional[float] = None  # Candidates scoring below this are dropped
    match_floor: float = 0.0
    match_ceiling: float = 100.0

    @classmethod
    def from_settings(cls) -> "ScoringWeights":
        return cls(
            base_score=settings.SCORING_BASE_SCORE,
            budget_bonus=settings.SCORING_BUDGET_BONUS,
            type_bonus=settings.SCORING_TYPE_BONUS,
            location_bonus=settings.SCORING_LOCATION_BONUS,
            risk_bonus=settings.SCORING_RISK_BONUS,
            liquidity_bonus=settings.SCORING_LIQUIDITY_BONUS,
            min_score=settings.SCORING_MIN_SCORE,
            match_floor=settings.SCORING_MATCH_FLOOR,
            match_ceiling=settings.SCORING_MATCH_CEILING,
        )


def parse_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse a currency amount or percentage ("2,500.00", "$1000", "14.2%", Decimal, int).
    Returns None when nothing numeric can be recovered.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    cleaned = _NUMBER_CHARS.sub("", str(value))
    if not cleaned:
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def classify_risk(expected_roi: Any) -> Optional[RiskLevel]:
    """ROI > 15% is high, 10% < ROI <= 15% is medium, anything lower is low."""
    roi = parse_decimal(expected_roi)
    if roi is None:
        return None
    if roi > HIGH_RISK_ROI:
        return RiskLevel.HIGH
    if roi > MEDIUM_RISK_ROI:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _fits_budget(profile: InvestorProfile, min_investment: Any) -> bool:
    amount = parse_decimal(min_investment)
    if amount is None:
        return False
    budget = profile.preferred_investment_range
    return Decimal(str(budget.min)) <= amount <= Decimal(str(budget.max))


def _matches_type(profile: InvestorProfile, property_type: Optional[str]) -> bool:
    if not property_type:
        return False
    wanted = {t.lower() for t in profile.preferred_property_types}
    return property_type.strip().lower() in wanted


def _matches_location(profile: InvestorProfile, location: Optional[str]) -> bool:
    if not location:
        return False
    location_lower = location.lower()
    return any(loc.lower() in location_lower for loc in profile.preferred_locations if loc)


def _has_liquidity(available_tokens: Optional[int], total_tokens: Optional[int]) -> bool:
    if not available_tokens or not total_tokens:
        return False
    return Decimal(available_tokens) > Decimal(total_tokens) * LIQUIDITY_RATIO


def score_property(
    profile: InvestorProfile,
    prop: Any,
    weights: ScoringWeights,
) -> Tuple[float, List[str], RiskLevel]:
    """Score one property. Returns (clamped score, all fired reasons, risk level)."""
    score = weights.base_score
    reasons: List[str] = []

    if _fits_budget(profile, prop.min_investment):
        score += weights.budget_bonus
        reasons.append(REASON_BUDGET)

    if _matches_type(profile, prop.property_type):
        score += weights.type_bonus
        reasons.append(REASON_TYPE)

    if _matches_location(profile, prop.location):
        score += weights.location_bonus
        reasons.append(REASON_LOCATION)

    risk_level = classify_risk(prop.expected_roi)
    if risk_level is not None and RISK_LEVEL_FOR_TOLERANCE[profile.risk_tolerance] == risk_level:
        score += weights.risk_bonus
        reasons.append(RISK_REASONS[risk_level])

    if _has_liquidity(prop.available_tokens, prop.total_tokens):
        score += weights.liquidity_bonus
        reasons.append(REASON_LIQUIDITY)

    # Unparseable ROI is reported as medium risk but never earns the risk bonus
    return clamp(score, 0.0, 100.0), reasons, risk_level or RiskLevel.MEDIUM


def score_fallback(
    profile: InvestorProfile,
    candidates: Iterable[Any],
    weights: Optional[ScoringWeights] = None,
) -> List[ScoredProperty]:
    """
    Score every candidate against the profile, best first.

    Ties keep the candidates' input order. When weights.min_score is set,
    candidates scoring below it are left out.
    """
    weights = weights or ScoringWeights()
    scored: List[ScoredProperty] = []

    for prop in candidates:
        score, reasons, risk_level = score_property(profile, prop, weights)
        if weights.min_score is not None and score < weights.min_score:
            continue
        scored.append(
            ScoredProperty(
                property_id=prop.id,
                score=score,
                reasons=normalize_reasons(reasons),
                risk_level=risk_level,
                match_percentage=clamp(score, weights.match_floor, weights.match_ceiling),
            )
        )

    scored.sort(key=lambda s: s.score, reverse=True)
    return scored
