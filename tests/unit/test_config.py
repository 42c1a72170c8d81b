"""Unit tests for settings loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from flow_publisher.publisher.config import PublisherSettings

_ENV_VARS = (
    "KESTRA_BASE_URL",
    "KESTRA_UI_BASE_URL",
    "KESTRA_TENANT",
    "KESTRA_USERNAME",
    "KESTRA_PASSWORD",
    "KESTRA_DEFAULT_NAMESPACE",
    "KESTRA_REQUEST_TIMEOUT",
    "KESTRA_EXECUTION_SETTLE_SECONDS",
    "LOG_LEVEL",
    "FLOW_CONTEXT_STATE_PATH",
)


@pytest.fixture(autouse=True)
def _clean_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_settings_defaults() -> None:
    settings = PublisherSettings()

    assert settings.kestra_base_url == "http://localhost:8100"
    assert settings.ui_base_url == "http://localhost:8100"
    assert settings.kestra_tenant == ""
    assert settings.default_namespace == "company.team"
    assert settings.request_timeout_seconds == 30.0
    assert settings.execution_settle_seconds == 1.0
    assert settings.log_level == "INFO"
    assert settings.context_state_path == Path("agent_state/contexts.json")


def test_settings_loads_from_dotenv(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text(
        "\n".join(
            [
                "KESTRA_BASE_URL=http://kestra.internal:8080/",
                "KESTRA_UI_BASE_URL=https://kestra.example.com/",
                "KESTRA_TENANT=main",
                "KESTRA_DEFAULT_NAMESPACE=sales.team",
                "KESTRA_REQUEST_TIMEOUT=5",
                "LOG_LEVEL=DEBUG",
                "",
            ]
        ),
        encoding="utf-8",
    )

    settings = PublisherSettings()

    assert settings.kestra_base_url == "http://kestra.internal:8080"
    assert settings.ui_base_url == "https://kestra.example.com"
    assert settings.kestra_tenant == "main"
    assert settings.default_namespace == "sales.team"
    assert settings.request_timeout_seconds == 5.0
    assert settings.log_level == "DEBUG"


def test_environment_overrides_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ".env").write_text("KESTRA_DEFAULT_NAMESPACE=from.file\n", encoding="utf-8")
    monkeypatch.setenv("KESTRA_DEFAULT_NAMESPACE", "from.env")

    assert PublisherSettings().default_namespace == "from.env"


def test_blank_default_namespace_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KESTRA_DEFAULT_NAMESPACE", "  ")

    with pytest.raises(ValidationError):
        PublisherSettings()


def test_timeout_must_be_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("KESTRA_REQUEST_TIMEOUT", "0")

    with pytest.raises(ValidationError):
        PublisherSettings()


def test_fields_can_be_set_by_name() -> None:
    settings = PublisherSettings(_env_file=None, kestra_base_url="http://k/", default_namespace="x")

    assert settings.kestra_base_url == "http://k"
    assert settings.default_namespace == "x"
