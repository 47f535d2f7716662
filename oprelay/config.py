"""Configuration management with Pydantic Settings + optional YAML."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerConfig(BaseModel):
    bind: str = "0.0.0.0"
    port: int = 3000
    # Seconds a webhook response waits for routing before answering anyway
    webhook_response_timeout: float = 8.0


class GitHubConfig(BaseModel):
    webhook_secret: str = ""
    enforce_signature: bool = True


class OpenProjectConfig(BaseModel):
    base_url: str = ""
    api_key: str = ""
    developed_status_id: str = ""
    developed_status_name: str = "Developed"
    task_type_id: str = ""
    task_type_name: str = "Task"
    # Status ids above this are terminal in the target instance
    terminal_status_threshold: int = 8
    http_timeout: float = 30.0

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    @property
    def root_url(self) -> str:
        return self.base_url.rstrip("/")


class DiscordConfig(BaseModel):
    webhook_url: str = ""
    summary_webhook_url: str = ""
    due_users_webhook_url: str = ""
    message_limit: int = 1900
    split_window: int = 400

    @property
    def summary_target(self) -> str:
        return self.summary_webhook_url or self.webhook_url

    @property
    def reminder_target(self) -> str:
        return self.due_users_webhook_url or self.summary_target


class SchedulerConfig(BaseModel):
    daily_summary_times: str = ""
    due_users_times: str = ""
    enabled: bool = True


class DirectoryEntry(BaseModel):
    """A user that is always listed, even if the API account cannot see it."""
    id: int
    name: str
    username: str | None = None
    email: str | None = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="OPRELAY_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    openproject: OpenProjectConfig = Field(default_factory=OpenProjectConfig)
    discord: DiscordConfig = Field(default_factory=DiscordConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    directory: list[DirectoryEntry] = Field(default_factory=list)
    log_level: str = "INFO"
    log_json: bool = False
    log_file: str = "server.log"


# Flat variable names used by existing deployments -> (section, field)
_DEPLOYMENT_ENV: dict[str, tuple[str | None, str]] = {
    "PORT": ("server", "port"),
    "GITHUB_WEBHOOK_SECRET": ("github", "webhook_secret"),
    "ENFORCE_GITHUB_SIGNATURE": ("github", "enforce_signature"),
    "OPENPROJECT_BASE_URL": ("openproject", "base_url"),
    "OPENPROJECT_API_KEY": ("openproject", "api_key"),
    "DEVELOPED_STATUS_ID": ("openproject", "developed_status_id"),
    "DEVELOPED_STATUS_NAME": ("openproject", "developed_status_name"),
    "TASK_TYPE_ID": ("openproject", "task_type_id"),
    "TASK_TYPE_NAME": ("openproject", "task_type_name"),
    "TERMINAL_STATUS_THRESHOLD": ("openproject", "terminal_status_threshold"),
    "DISCORD_WEBHOOK_URL": ("discord", "webhook_url"),
    "DISCORD_SUMMARY_WEBHOOK_URL": ("discord", "summary_webhook_url"),
    "DISCORD_DUE_USERS_WEBHOOK_URL": ("discord", "due_users_webhook_url"),
    "DAILY_SUMMARY_TIMES": ("scheduler", "daily_summary_times"),
    "DUE_USERS_TIMES": ("scheduler", "due_users_times"),
    "LOG_FILE": (None, "log_file"),
}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _deployment_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Translate the flat deployment variables into nested settings data."""
    data: dict[str, Any] = {}
    for name, (section, field) in _DEPLOYMENT_ENV.items():
        raw = environ.get(name)
        if raw is None:
            continue
        value: Any = raw
        if name == "ENFORCE_GITHUB_SIGNATURE":
            # Only an explicit "false" turns verification off
            value = raw.strip().lower() != "false"
        if section is None:
            data[field] = value
        else:
            data.setdefault(section, {})[field] = value
    return data


def load_settings(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from env vars, optionally overlaying a YAML config.

    Precedence, lowest first: defaults, ``OPRELAY_*`` variables, the YAML
    file, then the flat deployment variables (``PORT``, ``OPENPROJECT_*``...).
    """
    if environ is None:
        environ = os.environ
    yaml_data: dict[str, Any] = {}

    if config_path is None:
        config_path = environ.get("OPRELAY_CONFIG")

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                yaml_data = yaml.safe_load(f) or {}

    data = _deep_merge(yaml_data, _deployment_overrides(environ))
    return Settings(**data)
