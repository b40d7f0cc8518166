"""
Configuration management for IntakeAware
"""

from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "IntakeAware"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENV: str = "development"

    # API
    API_PREFIX: str = "/api/v1"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite:///./intake_aware.db"
    DATABASE_ECHO: bool = False

    # LLM Configuration (OpenAI-compatible chat completions)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    LLM_MODEL: str = "gpt-4-turbo"
    LLM_TEMPERATURE: float = 0.2
    LLM_MAX_TOKENS: int = 2000
    LLM_TIMEOUT_SECONDS: int = 30

    # Awareness snapshots
    SNAPSHOT_DEFAULT_WINDOW: str = "30d"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


class AnalysisConfig:
    """Thresholds for intake metrics and awareness snapshots"""

    # Canonical UTC hour for each schedule time slot
    TIME_SLOT_HOURS: dict[str, int] = {
        "MORNING": 9,
        "AFTERNOON": 13,
        "EVENING": 18,
        "NIGHT": 22,
    }

    # Symbolic windows used as snapshot keys
    TIME_WINDOW_DAYS: dict[str, int] = {
        "7d": 7,
        "14d": 14,
        "30d": 30,
    }

    # Per-signal sufficiency minimums
    MIN_LOGS_FOR_ADHERENCE: int = 3
    MIN_TIMED_TAKEN_FOR_TIMING: int = 2
    MIN_OBSERVATIONS_FOR_ASSOCIATION: int = 2

    # Coverage buckets (logs / expected logs)
    COVERAGE_INSUFFICIENT_BELOW: float = 0.2
    COVERAGE_MINIMAL_BELOW: float = 0.5
    COVERAGE_ADEQUATE_BELOW: float = 0.8

    # Observation keywords
    MIN_KEYWORD_LENGTH: int = 3
    PROMPT_TOP_KEYWORDS: int = 10

    # Finding context strings are short plain descriptions
    MAX_FINDING_CONTEXT_LENGTH: int = 280


settings = get_settings()
analysis_config = AnalysisConfig()
