"""
Application configuration.
Values are loaded from environment variables or a local .env file.
"""
from typing import List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""
    
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or console
    
    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    
    # Document cache policy (seconds)
    PROGRAM_CACHE_TTL_SECONDS: float = 60.0
    PROGRESS_CACHE_TTL_SECONDS: float = 60.0
    
    # Re-focus policy: a surface that regains attention inside the window
    # shows a light "refreshing" state and revalidates after the delay
    QUICK_REENTRY_WINDOW_SECONDS: float = 3.0
    DEFERRED_REVALIDATE_DELAY_SECONDS: float = 0.3
    
    # Analytics
    STREAK_LOOKBACK_DAYS: int = 365
    TREND_WINDOW: int = 3
    TREND_THRESHOLD: float = 0.05
    
    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
