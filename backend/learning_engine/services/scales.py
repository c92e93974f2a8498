"""
Adaptive Learning Engine - Scales
Conversions between difficulty bands and the [0, 1] mastery scale
"""
from learning_engine.core.config import settings
from learning_engine.schemas.common import DifficultyLevel

BAND_ORDER = [DifficultyLevel.BEGINNER, DifficultyLevel.INTERMEDIATE, DifficultyLevel.ADVANCED]


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def nominal_difficulty(level: DifficultyLevel) -> float:
    """Where a question band sits on the mastery scale."""
    return {
        DifficultyLevel.BEGINNER: settings.DIFFICULTY_BEGINNER,
        DifficultyLevel.INTERMEDIATE: settings.DIFFICULTY_INTERMEDIATE,
        DifficultyLevel.ADVANCED: settings.DIFFICULTY_ADVANCED,
    }[level]


def bands_by_proximity(target: float) -> list[DifficultyLevel]:
    """All bands, nearest to the target mastery first (easier band wins ties)."""
    return sorted(
        BAND_ORDER,
        key=lambda level: (abs(nominal_difficulty(level) - target), BAND_ORDER.index(level)),
    )
