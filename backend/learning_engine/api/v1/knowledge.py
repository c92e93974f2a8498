"""
Adaptive Learning Engine - Knowledge API Router
Knowledge profiles, gaps and attempt analysis
"""
import uuid
from typing import Optional

from fastapi import APIRouter

from learning_engine.api.deps import CurrentActor, Gaps
from learning_engine.core.policy import Operation, ensure_allowed
from learning_engine.schemas.knowledge import (
    KnowledgeGapRead,
    KnowledgeProfile,
    ProfileUpdateRequest,
)
from learning_engine.services.gap_analyzer import GapAnalysisResult

router = APIRouter(prefix="/knowledge", tags=["Knowledge"])


@router.get("/profile", response_model=KnowledgeProfile)
async def get_profile(actor: CurrentActor, analyzer: Gaps, student_id: Optional[str] = None):
    student_id = student_id or actor.user_id
    ensure_allowed(actor, Operation.READ_PROFILE, student_id)
    return await analyzer.get_profile(student_id)


@router.post("/profile", response_model=KnowledgeProfile)
async def update_profile(request: ProfileUpdateRequest, actor: CurrentActor, analyzer: Gaps):
    """Fold several attempts and externally detected gaps into the caller's profile."""
    ensure_allowed(actor, Operation.UPDATE_PROFILE, actor.user_id)
    return await analyzer.update_profile(actor.user_id, request.attempt_ids, request.extra_gaps)


@router.get("/gaps", response_model=list[KnowledgeGapRead])
async def list_gaps(
    actor: CurrentActor,
    analyzer: Gaps,
    student_id: Optional[str] = None,
    unresolved_only: bool = True,
):
    student_id = student_id or actor.user_id
    ensure_allowed(actor, Operation.READ_GAPS, student_id)
    return await analyzer.list_gaps(student_id, unresolved_only=unresolved_only)


@router.post(
    "/assessments/{assessment_id}/attempts/{attempt_id}/analyze",
    response_model=GapAnalysisResult,
)
async def analyze_attempt(
    assessment_id: uuid.UUID,
    attempt_id: uuid.UUID,
    actor: CurrentActor,
    analyzer: Gaps,
):
    """Update mastery from a graded attempt and report the gaps it revealed."""
    ensure_allowed(actor, Operation.ANALYZE_ATTEMPT, actor.user_id)
    return await analyzer.analyze_attempt(actor.user_id, assessment_id, attempt_id)
