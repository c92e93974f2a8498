"""
Adaptive Learning Engine - Roadmap API Router
"""
import uuid
from typing import Optional

from fastapi import APIRouter

from learning_engine.api.deps import CurrentActor, Roadmaps
from learning_engine.core.errors import NotFoundError
from learning_engine.core.policy import Operation, ensure_allowed
from learning_engine.schemas.roadmap import (
    AlternativePath,
    AlternativePathRequest,
    RoadmapRead,
    RoadmapRequest,
    RoadmapStatusUpdate,
)

router = APIRouter(prefix="/roadmaps", tags=["Roadmaps"])


@router.post("", response_model=RoadmapRead)
async def generate_roadmap(request: RoadmapRequest, actor: CurrentActor, planner: Roadmaps):
    """Build the caller's roadmap, or return the active one if nothing changed."""
    ensure_allowed(actor, Operation.GENERATE_ROADMAP, actor.user_id)
    return await planner.generate(actor.user_id, request)


@router.get("/active", response_model=RoadmapRead)
async def get_active_roadmap(actor: CurrentActor, planner: Roadmaps, student_id: Optional[str] = None):
    student_id = student_id or actor.user_id
    ensure_allowed(actor, Operation.READ_ROADMAP, student_id)
    roadmap = await planner.get_with_progress(student_id)
    if roadmap is None:
        raise NotFoundError(f"Student {student_id} has no active roadmap")
    return roadmap


@router.patch("/active/status", response_model=RoadmapRead)
async def set_roadmap_status(request: RoadmapStatusUpdate, actor: CurrentActor, planner: Roadmaps):
    """Pause the active roadmap, or resume the last paused one."""
    ensure_allowed(actor, Operation.SET_ROADMAP_STATUS, actor.user_id)
    return await planner.set_status(actor.user_id, request.status)


@router.post("/alternative-paths", response_model=list[AlternativePath])
async def alternative_paths(
    request: AlternativePathRequest,
    actor: CurrentActor,
    planner: Roadmaps,
    student_id: Optional[str] = None,
):
    """Other content covering the topics a student struggles with around one item."""
    student_id = student_id or actor.user_id
    ensure_allowed(actor, Operation.ALTERNATIVE_PATHS, student_id)
    return await planner.alternative_paths(student_id, request.current_content_id, request.struggling_topics)


@router.post("/active/adjust/{attempt_id}", response_model=RoadmapRead)
async def adjust_for_failed_attempt(attempt_id: uuid.UUID, actor: CurrentActor, planner: Roadmaps):
    """Add remedial steps to the caller's active roadmap after a failed attempt."""
    ensure_allowed(actor, Operation.ADAPT_ROADMAP, actor.user_id)
    return await planner.handle_assessment_failure(actor.user_id, attempt_id)
