"""
Configuration settings using Pydantic
"""
from functools import lru_cache
from typing import Optional
from pathlib import Path
from pydantic_settings import BaseSettings

# Get the backend directory
BACKEND_DIR = Path(__file__).resolve().parent.parent.parent
ENV_FILE = BACKEND_DIR / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # App
    APP_NAME: str = "ImobCRM"
    DEBUG: bool = False

    # Supabase
    SUPABASE_URL: str
    SUPABASE_KEY: str

    # OpenAI (or any OpenAI-compatible gateway)
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_BASE_URL: Optional[str] = None

    # Third-party integrations
    ELEVEN_LABS_API_KEY: Optional[str] = None
    CLICKUP_API_TOKEN: Optional[str] = None
    C2S_API_TOKEN: Optional[str] = None
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Flow engine
    FLOW_MAX_STEPS: int = 50
    FLOW_INLINE_DELAY_LIMIT_SECONDS: int = 30

    # Realtime fan-out
    REALTIME_CACHE_SIZE: int = 1000
    REALTIME_EVICT_BATCH: int = 100
    REALTIME_ENABLED: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    class Config:
        env_file = str(ENV_FILE)
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
