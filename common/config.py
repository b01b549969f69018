"""
Configuration management for Zenly Platform Service

This module handles all configuration settings using Pydantic Settings.
"""

import os
from typing import List, Optional, Dict, Any
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml

# --- Project paths ---
PROJECT_ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
ENV_FILE_PATH = os.path.join(PROJECT_ROOT_DIR, ".env")
RATE_LIMIT_YAML_PATH = os.path.join(PROJECT_ROOT_DIR, "config", "rate_limits.yaml")


class Settings(BaseSettings):
    """
    Application settings read from the .env file and environment variables.
    """
    model_config = SettingsConfigDict(
        env_file=ENV_FILE_PATH,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra='ignore'
    )

    # --- Application Info ---
    APP_NAME: str = "Zenly Platform Service"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Journaling, mood tracking, peer support and resources for Zenly"
    ENVIRONMENT: str = Field(default="development", description="Runtime environment (development, staging, production)")
    DEBUG: bool = Field(default=False)

    # --- API Server ---
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 5001
    API_WORKERS: int = 1

    # --- Security ---
    JWT_ACCESS_SECRET: str = Field("zenly-access-secret-change-in-production-0001", min_length=32)
    JWT_REFRESH_SECRET: str = Field("zenly-refresh-secret-change-in-production-001", min_length=32)
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    ADMIN_PASSWORD: Optional[str] = None
    MIN_PASSWORD_LENGTH: int = 6

    # --- Database (MongoDB & Redis) ---
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "zenly"
    REDIS_URL: str = "redis://localhost:6379"

    # --- Rate limiting ---
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE: str = Field(default="memory", description="Counter storage backend (memory, redis)")
    RATE_LIMIT_CONFIG_PATH: str = RATE_LIMIT_YAML_PATH

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE_PATH: str = os.path.join(PROJECT_ROOT_DIR, "logs", "zenly.log")
    LOG_MAX_SIZE: str = "100MB"
    LOG_BACKUP_COUNT: int = 5

    # --- CORS / Realtime ---
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    CORS_ALLOW_CREDENTIALS: bool = True

    # --- Monitoring ---
    METRICS_ENABLED: bool = True
    SYSTEM_METRICS_INTERVAL_SECONDS: int = 30

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def _split_str_to_list(cls, v: Any) -> List[str]:
        """Accept a comma separated string as well as a list."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(',') if item.strip()]
        return v

    @field_validator('RATE_LIMIT_STORAGE')
    @classmethod
    def _check_storage(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "redis"):
            raise ValueError("RATE_LIMIT_STORAGE must be 'memory' or 'redis'")
        return v

    # --- Computed properties ---

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        """True when running in the development environment"""
        return self.ENVIRONMENT == "development"


class RateLimitConfig:
    """Loads the per route group rate limit policies from YAML."""

    def __init__(self, config_path: str = RATE_LIMIT_YAML_PATH):
        self.config_path = config_path
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        if os.path.exists(self.config_path):
            with open(self.config_path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}
        return {}

    def get_policy(self, name: str) -> Dict[str, Any]:
        """Return the raw settings for one policy (empty dict when unknown)."""
        return self._config.get("policies", {}).get(name, {})

    @property
    def policy_names(self) -> List[str]:
        return list(self._config.get("policies", {}).keys())


# --- Accessors ---

@lru_cache()
def get_settings() -> Settings:
    """
    Return the settings object. Loaded once per process.
    """
    return Settings()


@lru_cache()
def get_rate_limit_config() -> RateLimitConfig:
    """
    Return the rate limit configuration. Loaded once per process.
    """
    return RateLimitConfig(get_settings().RATE_LIMIT_CONFIG_PATH)

