"""
Adaptive Learning Engine - Assessment API Router
Initial and personalized assessments, attempts and the question bank
"""
import uuid

from fastapi import APIRouter, status

from learning_engine.api.deps import Assessments, CurrentActor
from learning_engine.core.policy import Operation, ensure_allowed
from learning_engine.schemas.assessment import (
    AssessmentRead,
    AttemptRead,
    AttemptSubmitRequest,
    InitialAssessmentConfig,
    ManualGradeRequest,
    PersonalizedAssessmentRequest,
    Question,
    QuestionAuthorRequest,
    QuestionCreate,
)

router = APIRouter(prefix="/assessments", tags=["Assessments"])


@router.post("/initial", response_model=AssessmentRead, status_code=status.HTTP_201_CREATED)
async def create_initial_assessment(
    config: InitialAssessmentConfig, actor: CurrentActor, generator: Assessments
):
    """Placement assessment sampling every topic across difficulty bands."""
    ensure_allowed(actor, Operation.CREATE_INITIAL_ASSESSMENT)
    return await generator.create_initial(config, student_id=actor.user_id)


@router.post("/personalized", response_model=AssessmentRead, status_code=status.HTTP_201_CREATED)
async def generate_personalized_assessment(
    request: PersonalizedAssessmentRequest, actor: CurrentActor, generator: Assessments
):
    ensure_allowed(actor, Operation.GENERATE_PERSONALIZED_ASSESSMENT, actor.user_id)
    return await generator.generate_personalized(actor.user_id, request.subject_area)


@router.post(
    "/{assessment_id}/attempts",
    response_model=AttemptRead,
    status_code=status.HTTP_201_CREATED,
)
async def submit_attempt(
    assessment_id: uuid.UUID,
    request: AttemptSubmitRequest,
    actor: CurrentActor,
    generator: Assessments,
):
    ensure_allowed(actor, Operation.SUBMIT_ATTEMPT, actor.user_id)
    # Students cannot award themselves points; open answers wait for manual grading
    answers = [a.model_copy(update={"points_awarded": None}) for a in request.answers]
    return await generator.submit_attempt(actor.user_id, assessment_id, answers)


@router.post("/attempts/{attempt_id}/grade", response_model=AttemptRead)
async def grade_attempt(
    attempt_id: uuid.UUID,
    request: ManualGradeRequest,
    actor: CurrentActor,
    generator: Assessments,
):
    ensure_allowed(actor, Operation.MANUAL_GRADE)
    return await generator.apply_manual_grade(attempt_id, request.corrections, graded_by=actor.user_id)


@router.post("/questions", response_model=Question, status_code=status.HTTP_201_CREATED)
async def add_question(question: QuestionCreate, actor: CurrentActor, generator: Assessments):
    ensure_allowed(actor, Operation.AUTHOR_QUESTIONS)
    return await generator.add_question(question)


@router.post(
    "/questions/generate",
    response_model=list[Question],
    status_code=status.HTTP_201_CREATED,
)
async def generate_questions(request: QuestionAuthorRequest, actor: CurrentActor, generator: Assessments):
    """AI-authored questions added straight to the bank."""
    ensure_allowed(actor, Operation.AUTHOR_QUESTIONS)
    return await generator.author_questions(request)
