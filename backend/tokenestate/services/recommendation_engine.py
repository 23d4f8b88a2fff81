"""
Property recommendation orchestration and explanations.

generate_recommendations() never raises: inference failures fall back to the
rule-based scorer and anything unexpected yields an empty list.
explain_recommendation() likewise always returns text.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from tokenestate.core.config import settings
from tokenestate.models import Investment, Property
from tokenestate.schemas.property import PropertyResponse
from tokenestate.schemas.recommendation import (
    InvestorProfile,
    PropertyRecommendation,
    ScoredProperty,
)
from tokenestate.services import storage
from tokenestate.services.fallback_scorer import ScoringWeights, score_fallback
from tokenestate.services.llm_client import InferenceClient, InferenceError
from tokenestate.services.profile_analyzer import analyze_user_profile
from tokenestate.utils.timing import now_ms, log_elapsed

logger = logging.getLogger(__name__)

PROPERTY_NOT_FOUND = "Property not found"
EXPLANATION_EMPTY = "Unable to generate explanation"
EXPLANATION_UNAVAILABLE = "Unable to generate detailed explanation at this time"

SCORING_SYSTEM_PROMPT = (
    "You are an expert real estate investment advisor. "
    "Provide data-driven property recommendations based on user profiles."
)
EXPLANATION_SYSTEM_PROMPT = (
    "You are a professional real estate investment advisor providing personalized property recommendations."
)


@dataclass(frozen=True)
class ScoringSucceeded:
    entries: List[ScoredProperty]


@dataclass(frozen=True)
class ScoringFailed:
    reason: str


ScoringOutcome = Union[ScoringSucceeded, ScoringFailed]


def _describe_profile(profile: InvestorProfile) -> str:
    budget = profile.preferred_investment_range
    return (
        f"- Preferred Investment Range: ${budget.min:,.0f} - ${budget.max:,.0f}\n"
        f"- Risk Tolerance: {profile.risk_tolerance.value}\n"
        f"- Preferred Property Types: {', '.join(profile.preferred_property_types)}\n"
        f"- Preferred Locations: {', '.join(profile.preferred_locations)}\n"
        f"- Investment Goals: {', '.join(profile.investment_goals)}"
    )


def build_scoring_prompt(profile: InvestorProfile, candidates: Sequence[Property]) -> str:
    listing = "\n".join(
        f"""
  Property ID: {p.id}
  Title: {p.title}
  Location: {p.location}
  Type: {p.property_type}
  Total Value: ${p.total_value}
  Min Investment: ${p.min_investment}
  Expected ROI: {p.expected_roi}%
  Available Tokens: {p.available_tokens}/{p.total_tokens}
  Description: {p.description}"""
        for p in candidates
    )
    return f"""As a real estate investment AI, recommend the best properties for this user based on their profile and preferences.

User Investment Profile:
{_describe_profile(profile)}

Available Properties:
{listing}

Analyze each property and respond with a JSON object of exactly this structure:
{{
  "recommendations": [
    {{
      "propertyId": number,
      "score": number (0-100),
      "reasons": ["reason1", "reason2", "reason3"],
      "riskLevel": "low" | "medium" | "high",
      "matchPercentage": number (0-100)
    }}
  ]
}}

Consider factors like:
- Alignment with user's risk tolerance and investment goals
- Property location preferences
- Investment amount fit within preferred range
- Expected ROI vs risk level
- Property type preferences
- Market potential and growth prospects
"""


def build_explanation_prompt(profile: InvestorProfile, prop: Property) -> str:
    return f"""Provide a detailed explanation of why this property is recommended for the user.

User Profile:
{_describe_profile(profile)}

Recommended Property:
- Title: {prop.title}
- Location: {prop.location}
- Type: {prop.property_type}
- Value: ${prop.total_value}
- Min Investment: ${prop.min_investment}
- Expected ROI: {prop.expected_roi}%
- Description: {prop.description}

Write a comprehensive, personalized explanation (2-3 paragraphs) of why this property aligns with their
investment profile and goals. Be specific about the financial benefits, risk factors, and strategic fit.
"""


def parse_scored_entries(reply: Dict[str, Any], candidate_ids: Set[int]) -> List[ScoredProperty]:
    """
    Validate the inference reply item by item.

    Items that fail validation, reference a non-candidate property or repeat an
    already-seen property id are dropped.
    """
    raw_items = reply.get("recommendations")
    if not isinstance(raw_items, list):
        return []

    entries: List[ScoredProperty] = []
    seen: Set[int] = set()
    dropped = 0
    for item in raw_items:
        if not isinstance(item, dict):
            dropped += 1
            continue
        try:
            entry = ScoredProperty.model_validate(item)
        except ValidationError:
            dropped += 1
            continue
        if entry.property_id not in candidate_ids or entry.property_id in seen:
            dropped += 1
            continue
        seen.add(entry.property_id)
        entries.append(entry)

    if dropped:
        logger.info("Dropped %d unusable scoring entries from inference reply", dropped)
    return entries


def score_with_inference(
    client: Optional[InferenceClient],
    profile: InvestorProfile,
    candidates: Sequence[Property],
) -> ScoringOutcome:
    """Score all candidates in one batched inference call."""
    if client is None:
        return ScoringFailed("inference client not configured")

    try:
        reply = client.complete_json(
            "score_properties",
            SCORING_SYSTEM_PROMPT,
            build_scoring_prompt(profile, candidates),
            temperature=0.4,
        )
    except InferenceError as e:
        return ScoringFailed(str(e))

    entries = parse_scored_entries(reply, {p.id for p in candidates})
    if not entries:
        return ScoringFailed("inference reply contained no usable entries")
    return ScoringSucceeded(entries)


def normalize_limit(limit: Any) -> int:
    """Non-positive or non-integer limits mean "use the default"; large ones are capped."""
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        return settings.RECOMMENDATION_DEFAULT_LIMIT
    return min(limit, settings.RECOMMENDATION_MAX_LIMIT)


def select_candidates(properties: Sequence[Property], investments: Sequence[Investment]) -> List[Property]:
    """Investable properties the user does not already hold, in store order."""
    invested_ids = {inv.property_id for inv in investments}
    return [p for p in properties if p.id not in invested_ids and p.is_investable]


def rank_recommendations(
    entries: Sequence[ScoredProperty],
    candidates: Sequence[Property],
    limit: int,
) -> List[PropertyRecommendation]:
    """
    Join scored entries back to their properties, best first.

    Equal scores keep candidate order. Entries without a matching candidate
    are dropped.
    """
    position: Dict[int, Tuple[int, Property]] = {p.id: (i, p) for i, p in enumerate(candidates)}

    matched: List[Tuple[int, ScoredProperty, Property]] = []
    for entry in entries:
        hit = position.get(entry.property_id)
        if hit is None:
            continue
        index, prop = hit
        matched.append((index, entry, prop))

    matched.sort(key=lambda m: m[0])
    matched.sort(key=lambda m: m[1].score, reverse=True)

    return [
        PropertyRecommendation(
            property=PropertyResponse.model_validate(prop),
            score=entry.score,
            reasons=entry.reasons,
            risk_level=entry.risk_level,
            match_percentage=entry.match_percentage,
        )
        for _, entry, prop in matched[:limit]
    ]


def generate_recommendations(
    db: Session,
    user_id: int,
    limit: Any = None,
    client: Optional[InferenceClient] = None,
    weights: Optional[ScoringWeights] = None,
) -> List[PropertyRecommendation]:
    """
    Rank properties for user_id.

    Steps: infer profile, load candidates (investable, not already held),
    score them with the inference service, fall back to the rule-based scorer
    if that fails, then sort by score and truncate to limit.
    """
    limit = normalize_limit(limit)
    t0 = now_ms()

    try:
        profile = analyze_user_profile(db, user_id, client)
        t1 = log_elapsed(t0, f"user={user_id} analyze_profile")

        candidates = select_candidates(
            storage.get_properties(db),
            storage.get_investments_by_user(db, user_id),
        )
        if not candidates:
            logger.info("No candidate properties for user %s", user_id)
            return []
        t2 = log_elapsed(t1, f"user={user_id} load_candidates count={len(candidates)}")

        outcome = score_with_inference(client, profile, candidates)
        if isinstance(outcome, ScoringFailed):
            logger.warning(
                "Primary scoring failed for user %s, using fallback scorer: %s",
                user_id,
                outcome.reason,
            )
            entries = score_fallback(profile, candidates, weights or ScoringWeights.from_settings())
            source = "fallback"
        else:
            entries = outcome.entries
            source = "inference"
        log_elapsed(t2, f"user={user_id} score_candidates source={source}")

        recommendations = rank_recommendations(entries, candidates, limit)
        logger.info(
            "Generated %d recommendations for user %s (source=%s, candidates=%d)",
            len(recommendations),
            user_id,
            source,
            len(candidates),
        )
        return recommendations

    except Exception:
        logger.exception("Error generating recommendations for user %s", user_id)
        return []


def explain_recommendation(
    db: Session,
    property_id: int,
    user_id: int,
    client: Optional[InferenceClient] = None,
) -> str:
    """Free-text rationale for recommending property_id to user_id. Never raises."""
    try:
        prop = storage.get_property(db, property_id)
        if prop is None:
            return PROPERTY_NOT_FOUND

        profile = analyze_user_profile(db, user_id, client)
        if client is None:
            raise InferenceError("inference client not configured")

        text = client.complete_text(
            "explain_recommendation",
            EXPLANATION_SYSTEM_PROMPT,
            build_explanation_prompt(profile, prop),
            temperature=0.6,
        )
        return text or EXPLANATION_EMPTY

    except InferenceError as e:
        logger.warning("Explanation unavailable for property %s, user %s: %s", property_id, user_id, e)
    except Exception:
        logger.exception("Error explaining property %s for user %s", property_id, user_id)

    return EXPLANATION_UNAVAILABLE
