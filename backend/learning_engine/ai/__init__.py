"""
Adaptive Learning Engine - AI Components
"""
from learning_engine.ai.content_analysis import (
    ContentAnalysis,
    ContentAnalysisType,
    ContentAnalyzer,
    LLMContentAnalyzer,
    ResilientContentAnalyzer,
    RuleBasedContentAnalyzer,
    select_content_analyzer,
)
from learning_engine.ai.llm import LLMClient, get_llm_client
from learning_engine.ai.question_author import QuestionAuthor

__all__ = [
    "ContentAnalysis",
    "ContentAnalysisType",
    "ContentAnalyzer",
    "LLMContentAnalyzer",
    "ResilientContentAnalyzer",
    "RuleBasedContentAnalyzer",
    "select_content_analyzer",
    "LLMClient",
    "get_llm_client",
    "QuestionAuthor",
]
