"""Runtime configuration.

Values are resolved in this order: command-line flags, ``SDM_UI_*``
environment variables, the YAML config file, then the defaults below.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, InitSettingsSource, PydanticBaseSettingsSource, SettingsConfigDict

from sdm_ui.services.errors import ConfigurationException

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "sdm-ui.yaml"


def _xdg_dir(variable: str, fallback: str) -> Path:
    value = os.getenv(variable)
    return Path(value) if value else Path.home() / fallback


def default_data_dir() -> Path:
    return _xdg_dir("XDG_DATA_HOME", ".local/share")


def default_config_file() -> Path:
    return _xdg_dir("XDG_CONFIG_HOME", ".config") / CONFIG_FILENAME


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SDM_UI_",
        case_sensitive=False,
        extra="ignore",
    )

    email: str = ""
    db_path: Path = Field(default_factory=default_data_dir)
    verbose: bool = False
    blacklist_patterns: list[str] = Field(default_factory=list)
    timeout: float = Field(default=30.0, gt=0)
    sdm_executable: str = "sdm"
    menu_command: Literal["rofi", "wofi", "noop"] = "rofi"
    password_command: Literal["zenity", "cli"] = "zenity"

    @field_validator("blacklist_patterns", mode="before")
    @classmethod
    def _split_patterns(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value

    def require_email(self) -> str:
        if not self.email:
            raise ConfigurationException("an account email is required (--email or config file)")
        return self.email


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def read_config_file(path: Path) -> dict[str, Any]:
    """Load the YAML config file; a missing file yields no values."""
    if not path.exists():
        logger.debug("No config file at path=%s", path)
        return {}
    try:
        content = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationException(f"Unable to read config file {path}: {exc}") from exc
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationException(f"Config file {path} must contain a mapping")
    logger.debug("Loaded config file path=%s keys=%s", path, sorted(content))
    return {_snake_case(str(key)): value for key, value in content.items()}


def load_settings(config_file: Path | None = None, **overrides: Any) -> Settings:
    file_values = read_config_file(config_file or default_config_file())

    class FileBackedSettings(Settings):
        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,
            file_secret_settings: PydanticBaseSettingsSource,
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            return init_settings, env_settings, InitSettingsSource(settings_cls, init_kwargs=file_values)

    explicit = {key: value for key, value in overrides.items() if value is not None}
    try:
        return FileBackedSettings(**explicit)
    except ValidationError as exc:
        raise ConfigurationException(f"Invalid configuration: {exc}") from exc
