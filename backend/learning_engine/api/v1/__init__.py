"""Adaptive Learning Engine - API v1 Router."""
from fastapi import APIRouter

from learning_engine.api.v1.progression import router as progression_router
from learning_engine.api.v1.knowledge import router as knowledge_router
from learning_engine.api.v1.assessments import router as assessments_router
from learning_engine.api.v1.engagement import router as engagement_router
from learning_engine.api.v1.recommendations import router as recommendations_router
from learning_engine.api.v1.roadmaps import router as roadmaps_router

api_router = APIRouter()

api_router.include_router(progression_router)
api_router.include_router(knowledge_router)
api_router.include_router(assessments_router)
api_router.include_router(engagement_router)
api_router.include_router(recommendations_router)
api_router.include_router(roadmaps_router)
