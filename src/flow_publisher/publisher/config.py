"""Configuration for the flow publisher.

Configuration is loaded from:
- environment variables
- and a local `.env` file (if present)

Every value can still be overridden per call (CLI flags, request fields).
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PublisherSettings(BaseSettings):
    """Settings for talking to a Kestra instance.

    Environment variables:
    - KESTRA_BASE_URL
    - KESTRA_UI_BASE_URL        (optional, defaults to KESTRA_BASE_URL)
    - KESTRA_TENANT             (optional)
    - KESTRA_USERNAME / KESTRA_PASSWORD (optional basic auth)
    - KESTRA_DEFAULT_NAMESPACE  (optional)
    - LOG_LEVEL                 (optional)
    - FLOW_CONTEXT_STATE_PATH   (optional)

    Notes:
        Pydantic-settings supports overriding the env file in tests via:
        `PublisherSettings(_env_file=path_to_env)`.
    """

    kestra_base_url: str = Field(
        default="http://localhost:8100",
        validation_alias="KESTRA_BASE_URL",
        description="Kestra server base URL (without the /api suffix)",
    )
    kestra_ui_base_url: str = Field(
        default="",
        validation_alias="KESTRA_UI_BASE_URL",
        description="Base URL used for UI links; empty means KESTRA_BASE_URL",
    )
    kestra_tenant: str = Field(
        default="",
        validation_alias="KESTRA_TENANT",
        description="Tenant segment inserted after /api/v1 (e.g. 'main'); empty for none",
    )
    kestra_username: str = Field(default="", validation_alias="KESTRA_USERNAME")
    kestra_password: str = Field(default="", validation_alias="KESTRA_PASSWORD")

    default_namespace: str = Field(
        default="company.team",
        validation_alias="KESTRA_DEFAULT_NAMESPACE",
        description="Namespace assigned to flows that do not declare one",
    )

    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        validation_alias="KESTRA_REQUEST_TIMEOUT",
        description="Per-request timeout for Kestra API calls",
    )
    execution_settle_seconds: float = Field(
        default=1.0,
        ge=0,
        validation_alias="KESTRA_EXECUTION_SETTLE_SECONDS",
        description="Delay between triggering an execution and reading its state",
    )

    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )

    context_state_path: Path = Field(
        default=Path("agent_state/contexts.json"),
        validation_alias="FLOW_CONTEXT_STATE_PATH",
        description="JSON file where per-conversation flow context is persisted",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("kestra_base_url", "kestra_ui_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.strip().rstrip("/")

    @field_validator("default_namespace")
    @classmethod
    def _require_namespace(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("KESTRA_DEFAULT_NAMESPACE must not be empty")
        return value.strip()

    @property
    def ui_base_url(self) -> str:
        """Base URL for Kestra UI links."""

        return self.kestra_ui_base_url or self.kestra_base_url
