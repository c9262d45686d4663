from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, Field, SecretStr, ValidationError
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from autoimpl.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "autoimpl.config.json"
DEFAULT_OLLAMA_ENDPOINT = "http://localhost:11434/api/generate"
DEFAULT_CLOUDFLARE_API_URL = "https://api.cloudflare.com/client/v4/accounts"
DEFAULT_CLOUDFLARE_MODEL = "@cf/qwen/qwen2.5-coder-32b-instruct"


class AutoImplSettings(BaseSettings):
    """Settings of a generation run.

    Values come from, in order of precedence: keyword arguments, ``AUTOIMPL_*``
    environment variables and ``autoimpl.config.json`` in the working
    directory. Relative paths are relative to the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTOIMPL_",
        json_file=DEFAULT_CONFIG_FILE,
        json_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    source_root: Path = Path("src")
    output_dir: Path = Path("src/generated")
    lock_file: Path = Path("autoimpl.lock")
    default_model: str = "qwen3-coder"
    default_provider: str = "ollama"
    timeout: float = Field(default=600.0, ge=1)
    max_fix_attempts: int = Field(default=3, ge=0)
    max_concurrency: int = Field(default=1, ge=1)

    ollama_endpoint: str = Field(
        default=DEFAULT_OLLAMA_ENDPOINT,
        validation_alias=AliasChoices(
            "ollama_endpoint",
            "AUTOIMPL_OLLAMA_ENDPOINT",
            "OLLAMA_ENDPOINT",
        ),
    )
    cloudflare_account_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "cloudflare_account_id",
            "AUTOIMPL_CLOUDFLARE_ACCOUNT_ID",
            "CLOUDFLARE_ACCOUNT_ID",
        ),
    )
    cloudflare_api_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "cloudflare_api_token",
            "AUTOIMPL_CLOUDFLARE_API_TOKEN",
            "CLOUDFLARE_API_TOKEN",
        ),
    )
    cloudflare_api_url: str = Field(
        default=DEFAULT_CLOUDFLARE_API_URL,
        validation_alias=AliasChoices(
            "cloudflare_api_url",
            "AUTOIMPL_CLOUDFLARE_API_URL",
            "CLOUDFLARE_API_URL",
        ),
    )
    cloudflare_model: str = DEFAULT_CLOUDFLARE_MODEL

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            JsonConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    @property
    def has_cloudflare_credentials(self) -> bool:
        return bool(self.cloudflare_account_id and self.cloudflare_api_token)


def load_settings(config_file: Path | None = None, **overrides: Any) -> AutoImplSettings:
    """Load settings, reading ``config_file`` instead of the default JSON file.

    Raises ``ConfigurationError`` for unreadable files and invalid values.
    """
    settings_cls: type[AutoImplSettings] = AutoImplSettings
    if config_file is not None:
        if not config_file.is_file():
            msg = f"Config file not found: {config_file}"
            raise ConfigurationError(msg)
        settings_cls = type(
            AutoImplSettings.__name__,
            (AutoImplSettings,),
            {"model_config": SettingsConfigDict(json_file=config_file), "__module__": __name__},
        )
    clean_overrides = {key: value for key, value in overrides.items() if value is not None}
    try:
        settings = settings_cls(**clean_overrides)
    except ValidationError as error:
        msg = f"Invalid configuration: {error}"
        raise ConfigurationError(msg) from error
    except (OSError, ValueError) as error:
        msg = f"Cannot read configuration: {error}"
        raise ConfigurationError(msg) from error
    logger.debug("Loaded settings: %s", settings.model_dump(exclude={"cloudflare_api_token"}))
    return settings


def write_default_config(
    path: Path = Path(DEFAULT_CONFIG_FILE),
    *,
    overwrite: bool = False,
) -> Path:
    """Write a config file holding every non-secret default."""
    if path.exists() and not overwrite:
        msg = f"Config file already exists: {path}"
        raise ConfigurationError(msg)
    path.parent.mkdir(parents=True, exist_ok=True)
    defaults = AutoImplSettings.model_construct().model_dump(
        mode="json",
        exclude={"cloudflare_account_id", "cloudflare_api_token"},
    )
    path.write_text(json.dumps(defaults, indent=2) + "\n", encoding="utf-8")
    logger.info("Wrote default configuration to %s", path)
    return path
