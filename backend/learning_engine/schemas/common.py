"""
Adaptive Learning Engine - Shared Enums
"""
from enum import Enum


class ContentType(str, Enum):
    LESSON = "lesson"
    COURSE = "course"
    ASSESSMENT = "assessment"


class ProgressStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        """Position in the forward-only lifecycle."""
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [ProgressStatus.NOT_STARTED, ProgressStatus.IN_PROGRESS, ProgressStatus.COMPLETED]


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    MULTI_SELECT = "multi_select"
    SHORT_ANSWER = "short_answer"
    ESSAY = "essay"

    @property
    def partial_credit(self) -> bool:
        return self in (QuestionType.MULTI_SELECT, QuestionType.SHORT_ANSWER, QuestionType.ESSAY)


class InteractionType(str, Enum):
    VIEW = "view"
    START = "start"
    COMPLETE = "complete"


class RoadmapStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
