"""Resolve a RizzConfig from rizz.yaml, RIZZ__ environment variables and kwargs.

Later sources win: defaults, then the YAML file, then the environment, then
keyword arguments passed to load_config(). Nested sections merge key by key,
so ``RIZZ__DATABASE__PATH`` only replaces the path of a YAML database section.
"""

from contextvars import ContextVar
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import (
    BaseSettings,
    InitSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from rizz.config.models import DatabaseConfig, LoggingConfig, RizzConfig
from rizz.core.errors import ConfigError

DEFAULT_CONFIG_FILE = "rizz.yaml"

# YAML values for the load_config() call in progress
_file_values: ContextVar[dict[str, Any]] = ContextVar("rizz_file_values", default={})


def _load_yaml(path: Path) -> dict[str, Any]:
    """Mapping stored in ``path``; empty when the file is absent or blank."""
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError.parse_error(
            str(path), f"expected a mapping at top level, got {type(data).__name__}"
        )
    return data


class RizzSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RIZZ__",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    logging: LoggingConfig = LoggingConfig()
    database: DatabaseConfig = DatabaseConfig()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        file_settings = InitSettingsSource(settings_cls, init_kwargs=_file_values.get())
        return (init_settings, env_settings, file_settings)


def _config_error(error: ValidationError) -> ConfigError:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return ConfigError.invalid_value(location, first.get("input"), first["msg"])


def load_config(config_path: Path | None = None, **kwargs: Any) -> RizzConfig:
    """Build the effective configuration.

    Args:
        config_path: YAML file to read. Without it ``./rizz.yaml`` is used if
            present. An explicit path must exist.
        **kwargs: Section overrides, e.g. ``database={"path": "app.db"}``.

    Raises:
        ConfigError: missing explicit file, unreadable YAML, or a value that
            fails validation.
    """
    if config_path is None:
        values = _load_yaml(Path.cwd() / DEFAULT_CONFIG_FILE)
    elif config_path.is_file():
        values = _load_yaml(config_path)
    else:
        raise ConfigError.file_not_found(str(config_path))

    token = _file_values.set(values)
    try:
        settings = RizzSettings(**kwargs)
    except ValidationError as e:
        raise _config_error(e) from e
    finally:
        _file_values.reset(token)
    return RizzConfig(logging=settings.logging, database=settings.database)
