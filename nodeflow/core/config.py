"""Environment-driven configuration with Pydantic v2."""

from typing import Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings driven entirely by environment variables."""

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    # HTTP Request node
    http_timeout: float = Field(default=30.0, gt=0, le=300)

    # Durable steps (retry policy)
    step_max_attempts: int = Field(default=3, ge=1, le=20)
    step_initial_delay: float = Field(default=1.0, ge=0.0, le=60.0)
    step_max_delay: float = Field(default=30.0, ge=0.0, le=3600.0)
    step_backoff_multiplier: float = Field(default=2.0, ge=1.0, le=10.0)

    # Step result cache
    redis_enabled: bool = Field(default=False)
    redis_url: Optional[str] = Field(default=None)
    step_result_ttl: int = Field(default=86400, ge=60)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Normalize and check the log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("log_file")
    @classmethod
    def validate_log_file(cls, v):
        """Ensure the log directory exists."""
        if v:
            Path(v).parent.mkdir(parents=True, exist_ok=True)
        return v

    @property
    def use_redis(self) -> bool:
        """Redis is used only when enabled and a URL is configured."""
        return self.redis_enabled and bool(self.redis_url)

    model_config = {
        "env_prefix": "NODEFLOW_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
