"""
Investor profile inference.

Users without history (or unknown users) get the default moderate profile.
Otherwise the investment history is sent to the inference service and its
reply is validated strictly against InvestorProfile. Any failure also yields
the default profile: this module never raises to its callers.
"""
import logging
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from tokenestate.models import Investment, User
from tokenestate.schemas.recommendation import InvestmentRange, InvestorProfile, RiskTolerance
from tokenestate.services import storage
from tokenestate.services.llm_client import InferenceClient, InferenceError

logger = logging.getLogger(__name__)

PROFILE_SYSTEM_PROMPT = (
    "You are a real estate investment analyst. Analyze user data and respond only with valid JSON."
)


def default_investor_profile() -> InvestorProfile:
    """Cold-start profile: moderate risk, diversified types and locations."""
    return InvestorProfile(
        preferred_investment_range=InvestmentRange(min=1000, max=50000),
        risk_tolerance=RiskTolerance.MODERATE,
        preferred_property_types=["residential", "commercial"],
        preferred_locations=["urban", "suburban"],
        investment_goals=["long-term growth", "passive income"],
    )


def build_profile_prompt(user: User, investments: List[Investment]) -> str:
    history = "".join(
        f"""
  - Property ID: {inv.property_id}
  - Investment: ${inv.investment_amount}
  - Current Value: ${inv.current_value}
  - Tokens: {inv.tokens_owned}
"""
        for inv in investments
    )
    return f"""Analyze this real estate investor's profile and investment history to determine their preferences:

User Profile:
- Total Investments: {len(investments)}
- KYC Status: {user.kyc_status}
- Registration Date: {user.created_at.isoformat() if user.created_at else "unknown"}

Investment History:
{history}
Based on this data, determine the user's investment profile and respond with JSON in this exact format,
with no other keys:
{{
  "preferredInvestmentRange": {{ "min": number, "max": number }},
  "riskTolerance": "conservative" | "moderate" | "aggressive",
  "preferredPropertyTypes": ["type1", "type2"],
  "preferredLocations": ["location1", "location2"],
  "investmentGoals": ["goal1", "goal2"]
}}
"""


def analyze_user_profile(
    db: Session,
    user_id: int,
    client: Optional[InferenceClient] = None,
) -> InvestorProfile:
    """Derive the investor profile for user_id. Always returns a profile."""
    try:
        user = storage.get_user(db, user_id)
        investments = storage.get_investments_by_user(db, user_id) if user else []

        if not user or not investments:
            logger.debug("No investment history for user %s, using default profile", user_id)
            return default_investor_profile()

        if client is None:
            logger.info("Inference client not provided, using default profile for user %s", user_id)
            return default_investor_profile()

        reply = client.complete_json(
            "analyze_profile",
            PROFILE_SYSTEM_PROMPT,
            build_profile_prompt(user, investments),
            temperature=0.3,
        )
        profile = InvestorProfile.model_validate(reply)
        logger.info(
            "Inferred profile for user %s: risk=%s range=%s-%s",
            user_id,
            profile.risk_tolerance.value,
            profile.preferred_investment_range.min,
            profile.preferred_investment_range.max,
        )
        return profile

    except InferenceError as e:
        logger.warning("Profile inference unavailable for user %s, using default: %s", user_id, e)
    except ValidationError as e:
        logger.warning(
            "Profile inference returned an invalid profile for user %s, using default: %s",
            user_id,
            e.error_count(),
        )
    except Exception as e:
        # This function must NEVER throw - log and return the default
        logger.warning(f"Error analyzing profile for user {user_id}: {e}", exc_info=True)

    return default_investor_profile()
