"""
Adaptive Learning Engine - Progression API Router
Access checks, progress reporting and instructor blocks
"""
from typing import Optional

from fastapi import APIRouter, status

from learning_engine.api.deps import CurrentActor, Progression
from learning_engine.core.policy import Operation, ensure_allowed
from learning_engine.schemas.common import ContentType
from learning_engine.schemas.progress import (
    AccessDecision,
    BlockRequest,
    CourseOverview,
    ProgressionBlockRead,
    ProgressRecordRead,
    ProgressUpdate,
    ProgressUpdateResult,
)

router = APIRouter(prefix="/progression", tags=["Progression"])


@router.get("/access/{content_type}/{content_id}", response_model=AccessDecision)
async def check_access(
    content_type: ContentType,
    content_id: str,
    actor: CurrentActor,
    controller: Progression,
    student_id: Optional[str] = None,
):
    """Can the student open this content right now, and if not, why not."""
    student_id = student_id or actor.user_id
    ensure_allowed(actor, Operation.CHECK_ACCESS, student_id)
    return await controller.can_access(student_id, content_id, content_type)


@router.post("/progress", response_model=ProgressUpdateResult)
async def update_progress(update: ProgressUpdate, actor: CurrentActor, controller: Progression):
    """
    Report progress on a content item.

    The response lists every item the update unlocked.
    """
    ensure_allowed(actor, Operation.UPDATE_PROGRESS, update.student_id)
    return await controller.update_progress(update)


@router.post(
    "/progress/{student_id}/{content_id}/reset",
    response_model=ProgressRecordRead,
)
async def reset_progress(student_id: str, content_id: str, actor: CurrentActor, controller: Progression):
    ensure_allowed(actor, Operation.RESET_PROGRESS, student_id)
    return await controller.reset_progress(student_id, content_id, reset_by=actor.user_id)


@router.get("/blocks", response_model=list[ProgressionBlockRead])
async def list_blocks(actor: CurrentActor, controller: Progression, student_id: Optional[str] = None):
    student_id = student_id or actor.user_id
    ensure_allowed(actor, Operation.READ_BLOCKS, student_id)
    return await controller.blocked_content(student_id)


@router.post("/blocks", response_model=ProgressionBlockRead, status_code=status.HTTP_201_CREATED)
async def block_content(request: BlockRequest, actor: CurrentActor, controller: Progression):
    ensure_allowed(actor, Operation.BLOCK, request.student_id)
    return await controller.block(
        request.student_id, request.content_id, request.reason, blocked_by=actor.user_id
    )


@router.delete("/blocks/{student_id}/{content_type}/{content_id}", response_model=AccessDecision)
async def unblock_content(
    student_id: str,
    content_type: ContentType,
    content_id: str,
    actor: CurrentActor,
    controller: Progression,
):
    """Lift a block; the response is the access decision that now applies."""
    ensure_allowed(actor, Operation.UNBLOCK, student_id)
    return await controller.unblock(student_id, content_id, content_type, unblocked_by=actor.user_id)


@router.get("/courses/{course_id}/overview", response_model=CourseOverview)
async def course_overview(
    course_id: str,
    actor: CurrentActor,
    controller: Progression,
    student_id: Optional[str] = None,
):
    student_id = student_id or actor.user_id
    ensure_allowed(actor, Operation.COURSE_OVERVIEW, student_id)
    return await controller.course_overview(student_id, course_id)
