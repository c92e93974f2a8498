"""
Adaptive Learning Engine - Engagement API Router
"""
from typing import Optional

from fastapi import APIRouter, status

from learning_engine.api.deps import CurrentActor, Engagement
from learning_engine.core.policy import Operation, ensure_allowed
from learning_engine.schemas.engagement import EngagementPattern, RecordEventsRequest

router = APIRouter(prefix="/engagement", tags=["Engagement"])


@router.post(
    "/events",
    response_model=Optional[EngagementPattern],
    status_code=status.HTTP_202_ACCEPTED,
)
async def record_events(request: RecordEventsRequest, actor: CurrentActor, analyzer: Engagement):
    """Record interaction events; returns the refreshed pattern after a completion."""
    ensure_allowed(actor, Operation.RECORD_ENGAGEMENT, actor.user_id)
    return await analyzer.record(actor.user_id, request.events)


@router.get("/pattern", response_model=EngagementPattern)
async def get_pattern(actor: CurrentActor, analyzer: Engagement, refresh: bool = False):
    ensure_allowed(actor, Operation.READ_ENGAGEMENT, actor.user_id)
    if refresh:
        return await analyzer.analyze(actor.user_id)
    return await analyzer.cached_pattern(actor.user_id)
