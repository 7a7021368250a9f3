"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """HealthLens server and insights engine configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; the MCP surface has no auth layer of its own.
    healthlens_host: str = "127.0.0.1"
    healthlens_port: int = 8001
    healthlens_log_level: str = "info"
    healthlens_allow_insecure_bind: bool = False

    # Insights engine
    cache_ttl_seconds: int = 3600
    min_data_points: int = 3
    analysis_period_days: int = 30
    quick_stats_period_days: int = 7

    # Storage (health data bank)
    db_path: str = "~/.healthlens/health.db"
    encryption_key: str = ""

    # Single-user deployments call the tools without an explicit user id
    default_user_id: str = "local"


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
