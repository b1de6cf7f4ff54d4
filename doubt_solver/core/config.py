from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # either env name works; older deployments set GEMINI_API_KEY
    GOOGLE_API_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_API_KEY", "GEMINI_API_KEY"),
    )
    GEMINI_MODEL: str = "gemini-1.5-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    COMPLETION_TIMEOUT_SECONDS: float = 30.0
    GENERATION_TEMPERATURE: float = 0.1
    GENERATION_TOP_P: float = 0.8
    GENERATION_MAX_OUTPUT_TOKENS: int = 1500

    CACHE_TTL_SECONDS: float = 30 * 60

    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = None
    HISTORY_COLLECTION: str = "doubts"

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
