# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings. The
orchestrator never reads these directly: it receives the immutable
PipelineConfig built by Settings.to_pipeline_config().
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from pokefusion.pipeline.config import PipelineConfig


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === PROVIDERS ===
    replicate_api_token: str = ""
    openai_api_key: str = ""

    blend_provider: str = "replicate"
    describe_provider: str = "openai"
    enhance_provider: str = "openai"
    single_model_provider: str = "replicate"

    blend_model: str = (
        "charlesmccarthy/blend-images:"
        "1ed8aaaa04fa84f0c1191679e765d209b94866f6503038416dcbcb340fede892"
    )
    describe_model: str = "gpt-4.1-mini"
    enhance_model: str = "gpt-image-1"
    single_model: str = "qwen/qwen-image"

    # === Pipeline shape ===
    fusion_mode: Literal["multi_step", "single_model"] = "multi_step"
    enable_blend_stage: bool = True
    enable_describe_stage: bool = True
    enable_enhance_stage: bool = True

    # === Timeouts (seconds) ===
    blend_timeout_s: float = 30.0
    describe_timeout_s: float = 20.0
    enhance_timeout_s: float = 55.0
    single_model_timeout_s: float = 50.0
    http_timeout_s: float = 50.0

    # === Retries ===
    provider_max_retries: int = 2
    provider_base_delay_s: float = 0.5
    retry_jitter: bool = False

    # === Storage ===
    store_backend: Literal["json", "sqlite", "redis"] = "json"
    store_root: Path = Path("~/.pokefusion/store")
    store_redis_url: str = ""
    image_store_root: Path = Path("~/.pokefusion/images")
    image_public_base_url: str = ""

    # === Credits ===
    fusion_cost: int = 1
    signup_credits: int = 0

    # === Progress ===
    poll_run_ttl_s: float = 600.0
    sse_keepalive_s: float = 15.0

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator(
        "blend_timeout_s",
        "describe_timeout_s",
        "enhance_timeout_s",
        "single_model_timeout_s",
        "http_timeout_s",
    )
    @classmethod
    def validate_timeout(cls, v: float) -> float:  # noqa: N805
        if v <= 0:
            raise ValueError("stage timeouts must be > 0")
        return v

    @field_validator("provider_max_retries")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:  # noqa: N805
        if v < 0:
            raise ValueError("provider_max_retries must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        # describe only annotates; blend or enhance must produce the image
        if self.fusion_mode == "multi_step" and not (
            self.enable_blend_stage or self.enable_enhance_stage
        ):
            errors.append(
                "FUSION_MODE=multi_step requires ENABLE_BLEND_STAGE or ENABLE_ENHANCE_STAGE"
            )

        if (
            self.fusion_mode == "multi_step"
            and self.enable_enhance_stage
            and not self.enable_describe_stage
        ):
            errors.append("ENABLE_ENHANCE_STAGE requires ENABLE_DESCRIBE_STAGE")

        if self.store_backend == "redis" and not self.store_redis_url:
            errors.append("STORE_BACKEND=redis requires STORE_REDIS_URL")

        if self.fusion_cost < 1:
            errors.append("FUSION_COST must be >= 1")

        if self.signup_credits < 0:
            errors.append("SIGNUP_CREDITS must be >= 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def enabled_stages(self) -> list[str]:
        """Stage names in execution order for the configured mode."""
        if self.fusion_mode == "single_model":
            return ["fuse"]
        stages: list[str] = []
        if self.enable_blend_stage:
            stages.append("blend")
        if self.enable_describe_stage:
            stages.append("describe")
        if self.enable_enhance_stage:
            stages.append("enhance")
        return stages

    def to_pipeline_config(self) -> PipelineConfig:
        """Freeze the pipeline-relevant subset into an explicit config."""
        from pokefusion.pipeline.config import PipelineConfig, StageConfig

        timeouts = {
            "blend": self.blend_timeout_s,
            "describe": self.describe_timeout_s,
            "enhance": self.enhance_timeout_s,
            "fuse": self.single_model_timeout_s,
        }
        return PipelineConfig(
            stages=tuple(
                StageConfig(
                    name=name,
                    timeout_s=timeouts[name],
                    max_retries=self.provider_max_retries,
                    base_delay_s=self.provider_base_delay_s,
                )
                for name in self.enabled_stages
            ),
            retry_jitter=self.retry_jitter,
            fusion_cost=self.fusion_cost,
        )


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
