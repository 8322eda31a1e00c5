"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (CODEMIND__SERVER__PORT=8080)
  2. codemind.yaml          (searched in cwd, then the platform config dir)
  3. Hardcoded defaults

The config file is optional. Only the LLM credential has no usable default;
its absence is reported by the server at startup, not here.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("codemind")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "cache.db")

MAX_CONTENT_BYTES = 2 * 1024 * 1024


def _find_config_file() -> str | None:
    """Return the path of the first codemind.yaml found, or None."""
    candidates = [
        Path("codemind.yaml"),
        Path(platformdirs.user_config_dir("codemind")) / "codemind.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: str = "0.0.0.0"
    port: int = 3000
    env: Literal["development", "production"] = "development"
    static_dir: str = "dist"


class GithubSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    token: str | None = None  # server-side fallback, user token wins
    api_url: str = "https://api.github.com"
    raw_url: str = "https://raw.githubusercontent.com"
    user_agent: str = "CodeMind-Analyst"
    max_content_bytes: int = MAX_CONTENT_BYTES


class CacheSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    db_path: str = _DEFAULT_DB_PATH
    ttl_hours: float = 12


class LlmSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    api_key: str | None = None
    primary_model: str = "gemini-3.1-pro-preview"
    fallback_model: str = "gemini-3-flash-preview"
    response_language: str = "Brazilian Portuguese"
    min_key_length: int = 20


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: CODEMIND__SERVER__PORT=9090
        env_prefix="CODEMIND__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
        extra="forbid",
    )

    server: ServerSettings = ServerSettings()
    github: GithubSettings = GithubSettings()
    cache: CacheSettings = CacheSettings()
    llm: LlmSettings = LlmSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
        )
