# src/config/settings.py — v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings: provider keys,
generation loop limits, run defaults, storage backends and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from teamrun.core.errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM PROVIDERS ===
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    openai_base_url: str = ""
    llm_max_tokens: int = 4096
    llm_temperature: float = 0.2

    # === Generation loop ===
    llm_max_retries: int = 3
    llm_backoff_ms: int = 1000
    llm_receive_timeout_s: float = 120.0
    default_max_iterations: int = 25
    context_keep_rounds: int = 4
    handoff_summary_max_chars: int = 500
    max_cached_tool_blocks: int = 3

    # === Runs ===
    run_default_timeout_ms: int = 1_800_000

    # === Storage ===
    store_backend: Literal["memory", "sqlite"] = "memory"
    store_path: Path = Path("~/.teamrun/runs.db")

    # === Reports ===
    report_backend: Literal["memory", "markdown"] = "memory"
    report_root: Path = Path("~/.teamrun/reports")

    # === Remote tools (MCP over HTTP) ===
    mcp_request_timeout_s: float = 30.0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("llm_max_retries", "context_keep_rounds")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if self.default_max_iterations < 1:
            errors.append("DEFAULT_MAX_ITERATIONS must be >= 1")

        if self.handoff_summary_max_chars < 1:
            errors.append("HANDOFF_SUMMARY_MAX_CHARS must be >= 1")

        if self.run_default_timeout_ms <= 0:
            errors.append("RUN_DEFAULT_TIMEOUT_MS must be > 0")

        if self.llm_receive_timeout_s <= 0:
            errors.append("LLM_RECEIVE_TIMEOUT_S must be > 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
