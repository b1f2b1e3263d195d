"""Configuration management - loads environment variables into typed settings."""

from functools import cached_property, lru_cache
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from transcription_gateway.core.config import (
    DEFAULT_ALLOWED_TYPES,
    DEFAULT_ASR_ENDPOINT,
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_UPLOAD_BASE_URL,
    TranscriptionConfig,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Gateway Server Configuration
    gateway_host: str = Field(default="0.0.0.0", description="Host for the gateway to listen on")
    gateway_port: int = Field(default=9000, description="Port for the gateway to listen on")

    # DashScope Endpoints
    upload_base_url: str = Field(
        default=DEFAULT_UPLOAD_BASE_URL,
        description="DashScope uploads endpoint issuing signed upload policies",
    )
    asr_endpoint: str = Field(
        default=DEFAULT_ASR_ENDPOINT,
        description="DashScope multimodal-generation endpoint used for transcription",
    )

    # Timeout Configuration
    upstream_timeout_s: float = Field(
        default=30.0,
        description="Total timeout for each DashScope/OSS request (seconds)",
    )
    upstream_connect_timeout_s: float = Field(
        default=10.0,
        description="Connection timeout for each DashScope/OSS request (seconds)",
    )
    disconnect_poll_interval_s: float = Field(
        default=0.5,
        description="How often an in-flight transcription checks for client disconnect (seconds)",
    )

    # Upload Configuration
    max_file_size: int = Field(
        default=DEFAULT_MAX_FILE_SIZE,
        description="Maximum accepted upload size in bytes (default 100 MiB)",
    )
    allowed_types: str = Field(
        default=",".join(DEFAULT_ALLOWED_TYPES),
        description="Allowed upload content types (comma-separated list)",
    )
    upload_validity_hours: int = Field(
        default=48,
        description="Validity window reported for uploaded objects (hours)",
    )

    # Security Configuration
    allow_origins: str = Field(
        default="*",
        description="CORS allowed origins (comma-separated list, empty = no CORS)",
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )

    @field_validator("gateway_port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate port is in valid range."""
        if not (1 <= v <= 65535):
            raise ValueError(f"gateway_port must be between 1 and 65535, got {v}")
        return v

    @field_validator("upstream_timeout_s", "upstream_connect_timeout_s", "disconnect_poll_interval_s")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError(f"Timeout must be positive, got {v}")
        return v

    @field_validator("max_file_size", "upload_validity_hours")
    @classmethod
    def validate_positive_int(cls, v: int) -> int:
        """Validate size and validity limits are positive."""
        if v <= 0:
            raise ValueError(f"Value must be positive, got {v}")
        return v

    @field_validator("upload_base_url", "asr_endpoint")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate URL format."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https"):
            raise ValueError(f"URL must use http or https scheme, got {v}")
        if not parsed.netloc:
            raise ValueError(f"URL must have a valid host, got {v}")
        return v

    @field_validator("allowed_types")
    @classmethod
    def validate_allowed_types(cls, v: str) -> str:
        """Validate the allow-list is non-empty."""
        if not any(t.strip() for t in v.split(",")):
            raise ValueError("allowed_types must contain at least one content type")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}, got {v}")
        return v.upper()

    @property
    def allow_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if not self.allow_origins:
            return []
        return [origin.strip() for origin in self.allow_origins.split(",") if origin.strip()]

    @property
    def allowed_types_list(self) -> list[str]:
        """Parse comma-separated content types into a list."""
        return [t.strip() for t in self.allowed_types.split(",") if t.strip()]

    @property
    def server_address(self) -> str:
        return f"{self.gateway_host}:{self.gateway_port}"

    @cached_property
    def transcription_config(self) -> TranscriptionConfig:
        """Pipeline configuration, built once per settings instance."""
        return self.to_transcription_config()

    def to_transcription_config(self) -> TranscriptionConfig:
        """Build the immutable pipeline configuration from these settings."""
        return TranscriptionConfig(
            upload_base_url=self.upload_base_url,
            asr_endpoint=self.asr_endpoint,
            timeout_s=self.upstream_timeout_s,
            connect_timeout_s=self.upstream_connect_timeout_s,
            max_file_size=self.max_file_size,
            allowed_types=tuple(self.allowed_types_list),
            upload_validity_hours=self.upload_validity_hours,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Settings are loaded from environment variables and .env file on first call.
    Subsequent calls return the cached instance.

    Raises:
        ValueError: If settings are invalid.

    Returns:
        Settings: The validated settings instance.
    """
    try:
        return Settings()
    except Exception as e:
        raise ValueError(
            f"Failed to load configuration: {e}\n"
            "Please check your .env file and environment variables."
        ) from e
