"""
Adaptive Learning Engine - Recommendation API Router
"""
import uuid
from typing import Optional

from fastapi import APIRouter

from learning_engine.api.deps import CurrentActor, Recommendations
from learning_engine.core.policy import Operation, ensure_allowed
from learning_engine.schemas.recommendation import (
    RecommendationExplanation,
    RecommendationFeedbackIn,
    RecommendationRead,
    RecommendationRequest,
)

router = APIRouter(prefix="/recommendations", tags=["Recommendations"])


@router.post("", response_model=list[RecommendationRead])
async def generate_recommendations(
    actor: CurrentActor,
    ranker: Recommendations,
    request: Optional[RecommendationRequest] = None,
):
    """Ranked next steps for the caller, best first."""
    ensure_allowed(actor, Operation.GENERATE_RECOMMENDATIONS, actor.user_id)
    return await ranker.generate(actor.user_id, request)


@router.post("/feedback", response_model=RecommendationRead)
async def record_feedback(feedback: RecommendationFeedbackIn, actor: CurrentActor, ranker: Recommendations):
    ensure_allowed(actor, Operation.RECORD_FEEDBACK, actor.user_id)
    return await ranker.record_feedback(actor.user_id, feedback)


@router.get("/{recommendation_id}/explanation", response_model=RecommendationExplanation)
async def explain_recommendation(
    recommendation_id: uuid.UUID, actor: CurrentActor, ranker: Recommendations
):
    ensure_allowed(actor, Operation.EXPLAIN_RECOMMENDATION, actor.user_id)
    return await ranker.explain(actor.user_id, recommendation_id)
