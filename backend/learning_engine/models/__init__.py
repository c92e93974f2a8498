"""
Adaptive Learning Engine - Database Models
"""
from learning_engine.models.assessment import Assessment, AssessmentAttempt, BankQuestion
from learning_engine.models.content import ContentItem, Enrollment, PrerequisiteEdge
from learning_engine.models.engagement import EngagementSnapshot, InteractionEvent
from learning_engine.models.knowledge import KnowledgeGap, TopicMastery
from learning_engine.models.progress import ProgressionBlock, ProgressRecord
from learning_engine.models.recommendation import Recommendation, RecommendationFeedback
from learning_engine.models.roadmap import Roadmap

__all__ = [
    "Assessment",
    "AssessmentAttempt",
    "BankQuestion",
    "ContentItem",
    "Enrollment",
    "PrerequisiteEdge",
    "EngagementSnapshot",
    "InteractionEvent",
    "KnowledgeGap",
    "TopicMastery",
    "ProgressionBlock",
    "ProgressRecord",
    "Recommendation",
    "RecommendationFeedback",
    "Roadmap",
]
