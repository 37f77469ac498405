from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

KOGITO_CONTAINER_RESOURCES_PATH = "/home/kogito/serverless-workflow-project/src/main/resources"


class StderrPolicy(str, Enum):
    """How launch-time stderr output from the engine container is treated."""

    FATAL = "fatal"
    LOG = "log"


@dataclass(frozen=True)
class EngineConfig:
    """Everything the supervisor needs to start and probe the workflow engine."""

    base_url: str
    port: int
    resources_path: Path
    container_resources_path: str
    image: str
    health_path: str = "/q/health"
    poll_interval: float = 5.0
    max_attempts: int = 10
    launch_grace_seconds: float = 2.0
    stderr_policy: StderrPolicy = StderrPolicy.LOG
    autostart: bool = True

    @property
    def url(self) -> str:
        return f"{self.base_url}:{self.port}"

    @property
    def health_url(self) -> str:
        return f"{self.url}{self.health_path}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables with validation."""

    model_config = SettingsConfigDict(
        env_file=(str(Path(__file__).resolve().parents[1] / ".env"), ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    app_name: str = Field(default="SWF Backend", alias="APP_NAME")
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="development",
        alias="APP_ENV",
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    api_prefix: str = Field(default="/api/swf", alias="API_PREFIX")

    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        alias="CORS_ORIGINS",
    )

    backend_base_url: str = Field(default="http://localhost:7007", alias="BACKEND_BASE_URL")
    http_timeout_seconds: float = Field(default=30.0, gt=0, alias="HTTP_TIMEOUT_SECONDS")

    swf_base_url: str = Field(default="http://localhost", alias="SWF_BASE_URL")
    swf_port: int = Field(default=8899, ge=1, le=65535, alias="SWF_PORT")
    swf_workflow_service_path: Path = Field(
        default=Path("workflow-service/src/main/resources"),
        alias="SWF_WORKFLOW_SERVICE_PATH",
    )
    swf_container_resources_path: str = Field(
        default=KOGITO_CONTAINER_RESOURCES_PATH,
        alias="SWF_CONTAINER_RESOURCES_PATH",
    )
    swf_workflow_service_container: str = Field(
        default="quay.io/kiegroup/kogito-swf-devmode:1.40",
        alias="SWF_WORKFLOW_SERVICE_CONTAINER",
    )
    swf_health_poll_interval: float = Field(default=5.0, ge=0, alias="SWF_HEALTH_POLL_INTERVAL")
    swf_health_max_attempts: int = Field(default=10, ge=1, le=1000, alias="SWF_HEALTH_MAX_ATTEMPTS")
    swf_launch_grace_seconds: float = Field(default=2.0, ge=0, alias="SWF_LAUNCH_GRACE_SECONDS")
    swf_stderr_policy: StderrPolicy = Field(default=StderrPolicy.LOG, alias="SWF_STDERR_POLICY")
    swf_engine_autostart: bool = Field(default=True, alias="SWF_ENGINE_AUTOSTART")
    swf_spec_listing: Literal["fixed", "directory"] = Field(default="fixed", alias="SWF_SPEC_LISTING")

    @field_validator("api_prefix")
    @classmethod
    def validate_api_prefix(cls, value: str) -> str:
        """Ensure the API prefix starts with a slash and has no trailing slash."""
        normalized = value.strip()
        if not normalized.startswith("/"):
            raise ValueError("API_PREFIX must start with '/'.")
        if len(normalized) > 1 and normalized.endswith("/"):
            normalized = normalized.rstrip("/")
        return normalized

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: str | list[str]) -> list[str]:
        """Support comma-separated CORS origins from environment variables."""
        if isinstance(value, str):
            if not value.strip():
                return []
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("swf_base_url", "backend_base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        normalized = value.strip().rstrip("/")
        if not (normalized.startswith("http://") or normalized.startswith("https://")):
            raise ValueError("base URLs must start with http:// or https://")
        return normalized

    @field_validator("swf_stderr_policy", mode="before")
    @classmethod
    def normalize_stderr_policy(cls, value: str | StderrPolicy) -> str | StderrPolicy:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def engine_url(self) -> str:
        return f"{self.swf_base_url}:{self.swf_port}"

    @property
    def resources_root(self) -> Path:
        return self.swf_workflow_service_path.resolve()

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            base_url=self.swf_base_url,
            port=self.swf_port,
            resources_path=self.resources_root,
            container_resources_path=self.swf_container_resources_path,
            image=self.swf_workflow_service_container,
            poll_interval=self.swf_health_poll_interval,
            max_attempts=self.swf_health_max_attempts,
            launch_grace_seconds=self.swf_launch_grace_seconds,
            stderr_policy=self.swf_stderr_policy,
            autostart=self.swf_engine_autostart,
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()


settings: Settings = get_settings()
