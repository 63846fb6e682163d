"""
Pulse Configuration
===================
All environment variables in one place. Pydantic Settings validates
types at startup so a bad value fails at boot instead of mid-request.

Scoring calibration (feature ranges, component weights, the 30-example
personalization threshold) is compiled into the engine modules and is
deliberately not configurable here.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Loaded from environment variables or a .env file."""

    # --- Supabase ---
    supabase_url: str = "http://localhost:54321"
    supabase_service_key: str = ""  # service_role key for backend operations

    # --- App settings ---
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:8081", "http://localhost:19006"]

    # --- Feature flags ---
    # Kill switch: if False, every prediction comes from the rules path
    # and resolved days are still recorded as training examples.
    enable_personalized_model: bool = True

    # --- Query defaults ---
    recent_predictions_days: int = 30

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
