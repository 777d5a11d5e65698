"""
PencilX Shared Config
Environment configuration management using Pydantic
"""

from functools import lru_cache
from typing import List

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = ConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Application
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    json_logs: bool = False
    service_name: str = "pencilx-ai-gateway"
    service_port: int = 8000

    # HTTP
    cors_origins: List[str] = ["*"]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
