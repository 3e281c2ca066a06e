"""Application configuration using Pydantic settings."""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    environment: str = "development"
    log_level: Optional[str] = None

    # CORS
    allowed_origins: str = "http://localhost:3000,http://localhost:5173"

    # Redis (for ARQ worker and analysis locks)
    redis_url: str = "redis://127.0.0.1:6379"

    # Gemini
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"

    # Team analysis
    team_analysis_enabled: bool = True
    analysis_lock_ttl_seconds: int = 120

    # Website scraping
    scrape_timeout_seconds: float = 60.0
    scrape_max_redirects: int = 10

    # Live updates and callouts
    live_recent_events_limit: int = 10
    callout_ttl_minutes: int = 30

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
