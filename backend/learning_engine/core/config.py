"""
Adaptive Learning Engine - Core Configuration
Pydantic Settings for application configuration and engine tuning constants
"""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    APP_NAME: str = "Adaptive Learning Engine"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"
    LOG_LEVEL: str = "INFO"

    # API
    API_V1_PREFIX: str = "/api/v1"

    # Security (tokens are issued by the identity service; we only verify them)
    SECRET_KEY: str = "your-super-secret-key-change-in-production"
    ALGORITHM: str = "HS256"

    # Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "adaptive_learning"
    DATABASE_URL_OVERRIDE: str = ""

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # LLM Configuration
    LLM_PROVIDER: Literal["openai", "anthropic"] = "openai"
    OPENAI_API_KEY: str = ""
    ANTHROPIC_API_KEY: str = ""

    # OpenAI specific
    OPENAI_MODEL: str = "gpt-4o-mini"

    # Anthropic specific
    ANTHROPIC_MODEL: str = "claude-3-5-sonnet-latest"

    # LLM Performance
    LLM_TIMEOUT_SECONDS: int = 30
    LLM_MAX_RETRIES: int = 3
    LLM_REQUESTS_PER_MINUTE: int = 60

    @property
    def LLM_API_KEY(self) -> str:
        """API key for the configured provider (empty when AI is unavailable)."""
        if self.LLM_PROVIDER == "openai":
            return self.OPENAI_API_KEY
        return self.ANTHROPIC_API_KEY

    # Telemetry
    OTEL_ENABLED: bool = False
    OTEL_SERVICE_NAME: str = "adaptive-learning-engine"
    OTEL_EXPORTER_OTLP_ENDPOINT: str = "http://localhost:4317"

    # CORS - stored as comma-separated string
    CORS_ORIGINS_STR: str = "http://localhost:3000,http://localhost:5173"

    @property
    def CORS_ORIGINS(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.CORS_ORIGINS_STR.split(",") if origin.strip()]

    # ------------------------------------------------------------------
    # Knowledge model
    # ------------------------------------------------------------------
    GAP_THRESHOLD: float = 0.7          # Mastery below this emits a gap
    MASTERY_EMA_ALPHA: float = 0.3      # Weight of the newest observation
    CONFIDENCE_GAIN: float = 0.2        # Fraction of remaining doubt removed per observation

    # Nominal difficulty of each question band on the [0, 1] mastery scale
    DIFFICULTY_BEGINNER: float = 0.2
    DIFFICULTY_INTERMEDIATE: float = 0.5
    DIFFICULTY_ADVANCED: float = 0.8

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------
    INITIAL_ASSESSMENT_TIME_LIMIT: int = 30        # minutes
    PERSONALIZED_QUESTION_COUNT: int = 10
    PERSONALIZED_TIME_LIMIT: int = 20              # minutes
    PERSONALIZED_PASSING_SCORE: float = 70.0
    PERSONALIZED_MAX_ATTEMPTS: int = 3

    # ------------------------------------------------------------------
    # Engagement
    # ------------------------------------------------------------------
    ENGAGEMENT_HALF_LIFE_DAYS: float = 7.0
    ENGAGEMENT_LOOKBACK_DAYS: int = 90

    # ------------------------------------------------------------------
    # Recommendations (weights must sum to 1.0)
    # ------------------------------------------------------------------
    RECOMMENDATION_WEIGHT_GAP_RELEVANCE: float = 0.35
    RECOMMENDATION_WEIGHT_DIFFICULTY_FIT: float = 0.25
    RECOMMENDATION_WEIGHT_ENGAGEMENT_FIT: float = 0.15
    RECOMMENDATION_WEIGHT_NOVELTY: float = 0.15
    RECOMMENDATION_WEIGHT_PREREQUISITE_READINESS: float = 0.10
    RECOMMENDATION_DEFAULT_LIMIT: int = 10

    @property
    def RECOMMENDATION_WEIGHTS(self) -> dict[str, float]:
        return {
            "gap_relevance": self.RECOMMENDATION_WEIGHT_GAP_RELEVANCE,
            "difficulty_fit": self.RECOMMENDATION_WEIGHT_DIFFICULTY_FIT,
            "engagement_fit": self.RECOMMENDATION_WEIGHT_ENGAGEMENT_FIT,
            "novelty": self.RECOMMENDATION_WEIGHT_NOVELTY,
            "prerequisite_readiness": self.RECOMMENDATION_WEIGHT_PREREQUISITE_READINESS,
        }

    # ------------------------------------------------------------------
    # Roadmaps
    # ------------------------------------------------------------------
    ROADMAP_MAX_EXPLORED_NODES: int = 5000
    ROADMAP_DEFAULT_HOURS_PER_WEEK: float = 5.0
    ROADMAP_ALTERNATIVES_PER_TOPIC: int = 3
    ROADMAP_REMEDIAL_PER_TOPIC: int = 2
    ROADMAP_ALTERNATIVE_APPROACH_ATTEMPTS: int = 3


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
