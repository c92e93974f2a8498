"""
Adaptive Learning Engine - Content Analysis
Strategy interface for extracting topics and difficulty from text, with an
LLM-backed implementation and a deterministic rule-based fallback.
"""
import logging
import math
import re
from abc import ABC, abstractmethod
from collections import Counter
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from learning_engine.ai.llm import LLMClient
from learning_engine.ai.telemetry import ai_span
from learning_engine.core.config import settings
from learning_engine.core.errors import ExternalServiceError
from learning_engine.schemas.common import DifficultyLevel

logger = logging.getLogger(__name__)


# ============================================================================
# Types
# ============================================================================

class ContentAnalysisType(str, Enum):
    ASSESSMENT_GENERATION = "assessment_generation"
    ROADMAP_CREATION = "roadmap_creation"
    CONTENT_ANALYSIS = "content_analysis"
    DIFFICULTY_ASSESSMENT = "difficulty_assessment"


class ContentAnalysis(BaseModel):
    """Structured analysis of a piece of educational text."""
    key_topics: list[str] = Field(default_factory=list)
    difficulty: DifficultyLevel = DifficultyLevel.INTERMEDIATE
    learning_objectives: list[str] = Field(default_factory=list)
    concepts: list[str] = Field(default_factory=list)
    estimated_reading_time: int = 5  # minutes
    content_type: str = "mixed"      # theoretical, practical, mixed
    used_fallback: bool = False


class ContentAnalyzer(ABC):
    """Extracts topics, difficulty and objectives from educational text."""

    @abstractmethod
    async def analyze_content(
        self,
        text: str,
        analysis_type: ContentAnalysisType = ContentAnalysisType.CONTENT_ANALYSIS,
        known_topics: Optional[Iterable[str]] = None,
    ) -> ContentAnalysis:
        """
        Args:
            text: Content to analyze
            analysis_type: What the analysis will be used for
            known_topics: Topic labels already in use; preferred over new ones
        """


# ============================================================================
# Rule-based (deterministic) analyzer
# ============================================================================

_STOPWORDS = frozenset("""
a about above after again all also an and any are as at be because been before being
below between both but by can could did do does doing down during each few for from
further had has have having here how if in into is it its itself just more most no nor
not now of off on once only or other our out over own same she should so some such than
that the their them then there these they this those through to too under until up very
was we were what when where which while who whom why will with would you your using
use used learn learning lesson course student students question questions answer which
following value values find given
""".split())

_ADVANCED_MARKERS = frozenset({
    "advanced", "complex", "prove", "proof", "derive", "derivation", "rigorous",
    "theorem", "asymptotic", "optimization", "optimisation", "multivariable", "abstract",
})
_BEGINNER_MARKERS = frozenset({
    "introduction", "intro", "introductory", "basic", "basics", "beginner", "simple",
    "overview", "fundamentals", "first", "elementary",
})
_PRACTICAL_MARKERS = frozenset({
    "exercise", "exercises", "practice", "build", "implement", "lab", "project", "solve",
    "compute", "calculate", "apply",
})
_THEORETICAL_MARKERS = frozenset({
    "theory", "concept", "concepts", "principle", "principles", "definition", "proof",
    "explain", "why",
})

_WORDS_PER_MINUTE = 200


def _normalize_label(label: str) -> str:
    return re.sub(r"[\s_\-]+", " ", label.strip().lower())


class RuleBasedContentAnalyzer(ContentAnalyzer):
    """
    Keyword heuristics that never call out of process.

    Results are always flagged with used_fallback=True.
    """

    async def analyze_content(
        self,
        text: str,
        analysis_type: ContentAnalysisType = ContentAnalysisType.CONTENT_ANALYSIS,
        known_topics: Optional[Iterable[str]] = None,
    ) -> ContentAnalysis:
        words = re.findall(r"[a-z][a-z\-']*", text.lower())
        word_set = set(words)
        normalized_text = " " + " ".join(_normalize_label(w) for w in words) + " "

        key_topics = [
            topic for topic in sorted(set(known_topics or []))
            if f" {_normalize_label(topic)} " in normalized_text
        ]
        if not key_topics:
            counts = Counter(w for w in words if len(w) >= 4 and w not in _STOPWORDS)
            ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
            key_topics = [word for word, _ in ranked[:3]]

        difficulty_score = len(word_set & _ADVANCED_MARKERS) - len(word_set & _BEGINNER_MARKERS)
        if words and sum(len(w) for w in words) / len(words) > 6.5:
            difficulty_score += 1
        if difficulty_score > 0:
            difficulty = DifficultyLevel.ADVANCED
        elif difficulty_score < 0:
            difficulty = DifficultyLevel.BEGINNER
        else:
            difficulty = DifficultyLevel.INTERMEDIATE

        practical = bool(word_set & _PRACTICAL_MARKERS)
        theoretical = bool(word_set & _THEORETICAL_MARKERS)
        if practical and not theoretical:
            content_type = "practical"
        elif theoretical and not practical:
            content_type = "theoretical"
        else:
            content_type = "mixed"

        return ContentAnalysis(
            key_topics=key_topics,
            difficulty=difficulty,
            learning_objectives=[f"Understand {topic}" for topic in key_topics],
            concepts=list(key_topics),
            estimated_reading_time=max(1, math.ceil(len(words) / _WORDS_PER_MINUTE)),
            content_type=content_type,
            used_fallback=True,
        )


# ============================================================================
# LLM analyzer
# ============================================================================

CONTENT_ANALYSIS_PROMPT = """Analyze the following educational content and provide a structured analysis:

Content:
{content}

Respond with JSON only, in this format:
{{
  "key_topics": ["topic1", "topic2", "topic3"],
  "difficulty": "beginner|intermediate|advanced",
  "learning_objectives": ["objective1", "objective2"],
  "concepts": ["concept1", "concept2"],
  "estimated_reading_time": 10,
  "content_type": "theoretical|practical|mixed"
}}"""

ANALYSIS_FOCUS = {
    ContentAnalysisType.ASSESSMENT_GENERATION: "Focus on identifying key concepts that should be tested in an assessment.",
    ContentAnalysisType.ROADMAP_CREATION: "Focus on prerequisite knowledge and learning progression.",
    ContentAnalysisType.DIFFICULTY_ASSESSMENT: "Focus on accurately determining the difficulty level and required background knowledge.",
}


class LLMContentAnalyzer(ContentAnalyzer):
    """Asks the chat model for the analysis. Provider failures propagate."""

    SYSTEM_PROMPT = "You are an expert instructional designer who classifies learning material."

    def __init__(self, client: Optional[LLMClient] = None):
        self.client = client or LLMClient()

    def build_prompt(
        self,
        text: str,
        analysis_type: ContentAnalysisType,
        known_topics: Optional[Iterable[str]] = None,
    ) -> str:
        prompt = CONTENT_ANALYSIS_PROMPT.format(content=text)
        focus = ANALYSIS_FOCUS.get(analysis_type)
        if focus:
            prompt += f"\n\n{focus}"
        topics = sorted(set(known_topics or []))
        if topics:
            prompt += f"\n\nWhere possible, use these existing topic labels: {', '.join(topics)}"
        return prompt

    async def analyze_content(
        self,
        text: str,
        analysis_type: ContentAnalysisType = ContentAnalysisType.CONTENT_ANALYSIS,
        known_topics: Optional[Iterable[str]] = None,
    ) -> ContentAnalysis:
        with ai_span("content.analyze", type(self).__name__, {"analysis.type": analysis_type.value}):
            data = await self.client.generate_json(
                self.build_prompt(text, analysis_type, known_topics),
                system_prompt=self.SYSTEM_PROMPT,
                component=type(self).__name__,
            )

        if not isinstance(data, dict):
            raise ExternalServiceError("AI provider returned a non-object analysis")
        return self._parse(data)

    @staticmethod
    def _parse(data: dict) -> ContentAnalysis:
        def str_list(value) -> list[str]:
            return [str(v) for v in value] if isinstance(value, list) else []

        try:
            difficulty = DifficultyLevel(str(data.get("difficulty", "")).lower())
        except ValueError:
            difficulty = DifficultyLevel.INTERMEDIATE

        content_type = data.get("content_type")
        if content_type not in ("theoretical", "practical", "mixed"):
            content_type = "mixed"

        reading_time = data.get("estimated_reading_time")
        if not isinstance(reading_time, (int, float)) or reading_time <= 0:
            reading_time = 5

        return ContentAnalysis(
            key_topics=str_list(data.get("key_topics")),
            difficulty=difficulty,
            learning_objectives=str_list(data.get("learning_objectives")),
            concepts=str_list(data.get("concepts")),
            estimated_reading_time=int(math.ceil(reading_time)),
            content_type=content_type,
            used_fallback=False,
        )


# ============================================================================
# Fallback composition
# ============================================================================

class ResilientContentAnalyzer(ContentAnalyzer):
    """Runs the primary analyzer and falls back on any external-service failure."""

    def __init__(self, primary: ContentAnalyzer, fallback: ContentAnalyzer):
        self.primary = primary
        self.fallback = fallback

    async def analyze_content(
        self,
        text: str,
        analysis_type: ContentAnalysisType = ContentAnalysisType.CONTENT_ANALYSIS,
        known_topics: Optional[Iterable[str]] = None,
    ) -> ContentAnalysis:
        known = list(known_topics or [])
        try:
            return await self.primary.analyze_content(text, analysis_type, known)
        except ExternalServiceError as e:
            logger.warning("Content analysis falling back to rules (%s): %s", e.code, e.message)
            result = await self.fallback.analyze_content(text, analysis_type, known)
            return result.model_copy(update={"used_fallback": True})


def select_content_analyzer(client: Optional[LLMClient] = None) -> ContentAnalyzer:
    """
    Pick the analysis strategy by availability: the LLM (with rule fallback)
    when a provider key is configured, otherwise rules only.
    """
    if client is None and not settings.LLM_API_KEY:
        logger.info("No %s API key configured; using rule-based content analysis", settings.LLM_PROVIDER)
        return RuleBasedContentAnalyzer()
    return ResilientContentAnalyzer(LLMContentAnalyzer(client), RuleBasedContentAnalyzer())
