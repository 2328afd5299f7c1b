"""
Application configuration settings.
"""
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


PACKAGE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # App
    APP_NAME: str = "Route Fuzzing Service"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8000"

    def get_cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    # Corpus
    ASSETS_DIR: str = str(PACKAGE_DIR / "assets")

    # Generation
    DEFAULT_PERMUTATIONS: int = 10
    MAX_PERMUTATIONS: int = 500
    REGEX_ATTEMPTS: int = 20

    # Injection against live servers
    REQUEST_TIMEOUT: float = 30.0

    # Monitoring
    ENABLE_METRICS: bool = True


settings = Settings()
