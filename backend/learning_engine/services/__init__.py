"""Adaptive Learning Engine - Services initialization."""
from learning_engine.services.assessment_generator import AssessmentGenerator
from learning_engine.services.engagement import EngagementAnalyzer
from learning_engine.services.gap_analyzer import GapAnalysisResult, GapAnalyzer
from learning_engine.services.prerequisite_graph import PrerequisiteGraph
from learning_engine.services.progression import AccessSnapshot, ProgressionController
from learning_engine.services.recommendation import RecommendationRanker
from learning_engine.services.roadmap import RoadmapPlanner

__all__ = [
    "AssessmentGenerator",
    "EngagementAnalyzer",
    "GapAnalysisResult",
    "GapAnalyzer",
    "PrerequisiteGraph",
    "AccessSnapshot",
    "ProgressionController",
    "RecommendationRanker",
    "RoadmapPlanner",
]
