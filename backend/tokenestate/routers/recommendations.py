import logging
import uuid as uuid_lib
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tokenestate.database import get_db
from tokenestate.schemas.recommendation import (
    ExplanationResponse,
    InvestorProfile,
    RecommendationsResponse,
)
from tokenestate.services import recommendation_engine
from tokenestate.services.llm_client import InferenceClient, get_inference_client
from tokenestate.services.profile_analyzer import analyze_user_profile
from tokenestate.utils.timing import now_ms, log_elapsed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


def _parse_limit(raw: Optional[str]) -> Optional[int]:
    """Unparseable limits are passed on as None so the engine applies its default."""
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


@router.get("", response_model=RecommendationsResponse)
def get_recommendations(
    user_id: int = Query(..., description="User to recommend properties for"),
    limit: Optional[str] = Query(None, description="Maximum number of recommendations (default 5)"),
    db: Session = Depends(get_db),
    client: InferenceClient = Depends(get_inference_client),
):
    t0 = now_ms()
    request_id = str(uuid_lib.uuid4())
    logger.info("Fetching recommendations for user %s (req_id=%s)", user_id, request_id)

    items = recommendation_engine.generate_recommendations(
        db=db,
        user_id=user_id,
        limit=_parse_limit(limit),
        client=client,
    )
    log_elapsed(t0, f"req_id={request_id} user={user_id} recommendations_total", logger.info)

    property_ids = [item.property.id for item in items]
    logger.info(
        "recommendations_impression",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "count": len(items),
            "top_property_id": property_ids[0] if property_ids else None,
            "property_ids": property_ids,
        },
    )

    return RecommendationsResponse(request_id=request_id, items=items)


@router.get("/profile", response_model=InvestorProfile)
def get_investor_profile(
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    client: InferenceClient = Depends(get_inference_client),
):
    """The investor profile the recommendations for this user are based on."""
    return analyze_user_profile(db, user_id, client)


@router.get("/explain/{property_id}", response_model=ExplanationResponse)
def explain_recommendation(
    property_id: int,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    client: InferenceClient = Depends(get_inference_client),
):
    explanation = recommendation_engine.explain_recommendation(
        db=db,
        property_id=property_id,
        user_id=user_id,
        client=client,
    )
    return ExplanationResponse(property_id=property_id, explanation=explanation)
