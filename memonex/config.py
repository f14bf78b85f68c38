"""
Memonex Guard Configuration Management

Centralized configuration using Pydantic Settings for type-safe environment
variable loading with validation.

Scanner thresholds are overridden per deployment through MEMONEX_*
environment variables or a .env file.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MEMONEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ═══════════════════════════════════════════════════════════════
    # APPLICATION
    # ═══════════════════════════════════════════════════════════════
    app_name: str = Field(default="memonex-guard", description="Application name")
    app_env: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_json: bool = Field(default=False, description="Emit JSON log lines")

    # ═══════════════════════════════════════════════════════════════
    # SCAN POLICY
    # ═══════════════════════════════════════════════════════════════
    default_scan_mode: Literal["triage", "deep"] = Field(
        default="triage", description="Scan mode used when the caller does not pick one"
    )
    unsafe_score_threshold: float = Field(
        default=0.6, gt=0.0, le=1.0, description="Threat score at which a package is unsafe"
    )

    # Package limits
    max_insights: int = Field(
        default=200, ge=1, description="Insights per package before a size-limit block"
    )
    max_package_bytes: int = Field(
        default=2 * 1024 * 1024, ge=1, description="Scannable text budget in UTF-8 bytes"
    )
    many_insights_threshold: int = Field(
        default=50, ge=1, description="Insight count that raises a soft triage warning"
    )

    # Programmatic checks
    token_bomb_chars: int = Field(
        default=10_000, ge=1, description="Single-target length flagged as token bombing"
    )
    max_imprint_chars: int = Field(
        default=1200, ge=1, description="Memory text budget for imprint packages"
    )
    allowed_websocket_ports: str = Field(
        default="80,443,8080,8443,3000",
        description="Comma-separated WebSocket ports that are not flagged",
    )

    # Custom rules
    custom_rule_timeout: float = Field(
        default=1.0, gt=0.0, le=30.0, description="Seconds a custom rule may spend on one target"
    )

    @field_validator("unsafe_score_threshold")
    @classmethod
    def warn_permissive_threshold(cls, v: float) -> float:
        if v > 0.8:
            logger.warning(
                "unsafe_score_threshold=%.2f is permissive: a package needs several "
                "high-severity flags before it is rejected on score alone",
                v,
            )
        return v

    @field_validator("allowed_websocket_ports")
    @classmethod
    def validate_websocket_ports(cls, v: str) -> str:
        ports = [p.strip() for p in v.split(",") if p.strip()]
        if not ports:
            raise ValueError("At least one allowed WebSocket port is required")
        for port in ports:
            if not port.isdigit() or not 1 <= int(port) <= 65535:
                raise ValueError(f"Invalid WebSocket port: {port}")
        return v

    @property
    def websocket_ports(self) -> frozenset[int]:
        """Parse allowed WebSocket ports into a set."""
        return frozenset(
            int(port.strip()) for port in self.allowed_websocket_ports.split(",") if port.strip()
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
