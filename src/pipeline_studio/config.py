from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel, to_snake
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from pipeline_studio.exceptions import ConfigError
from pipeline_studio.logging import get_logger

__all__ = [
    "ExpansionOptions",
    "StudioConfig",
    "load_config",
    "parse_options",
    "get_user_config_path",
    "PROJECT_CONFIG_NAME",
]

logger = get_logger(__name__)

PROJECT_CONFIG_NAME = "pipeline-studio.yaml"


class ExpansionOptions(BaseModel):
    """Caller overrides for one expansion.

    Accepts camelCase keys (`baseDir`, `resourceLocations`, ...) as well as
    snake_case field names. Unknown keys are ignored.

    Attributes:
        parameters: Merged over the document's parameter defaults.
        variables: Merged over the document's variables.
        resources: Merged into document resources; `repositories` is merged
            by alias.
        locals: Initial loop-style bindings.
        base_dir: Directory relative template paths resolve against.
        file_name: Source file name; its folder is the default base_dir.
        repository_base_dir: Root for repository-relative templates.
        resource_locations: Repository alias to local path.
        template_stack: Label(s) seeding the template call stack.
        azure_compatible: Render blocks the way the pipeline service does.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    parameters: dict[str, Any] = Field(default_factory=dict)
    variables: dict[str, Any] = Field(default_factory=dict)
    resources: dict[str, Any] = Field(default_factory=dict)
    locals: dict[str, Any] = Field(default_factory=dict)
    base_dir: Path | None = None
    file_name: str | None = None
    repository_base_dir: Path | None = None
    resource_locations: dict[str, str] = Field(default_factory=dict)
    template_stack: str | list[str] | None = None
    azure_compatible: bool = False

    @field_validator("resource_locations", mode="before")
    @classmethod
    def drop_blank_locations(cls, v: Any) -> Any:
        if isinstance(v, Mapping):
            return {
                str(alias): str(path)
                for alias, path in v.items()
                if path is not None and str(path).strip()
            }
        return v


def _validation_config_error(error: ValidationError, what: str) -> ConfigError:
    first = error.errors()[0]
    return ConfigError(
        message=f"Invalid {what}: {first['msg']}",
        field=".".join(str(loc) for loc in first["loc"]),
        value=first.get("input"),
    )


def parse_options(overrides: ExpansionOptions | Mapping[str, Any] | None) -> ExpansionOptions:
    """Validate an overrides mapping into ExpansionOptions.

    Raises:
        ConfigError: If a recognized option has the wrong type.
    """
    if isinstance(overrides, ExpansionOptions):
        return overrides
    try:
        return ExpansionOptions.model_validate(dict(overrides or {}))
    except ValidationError as e:
        raise _validation_config_error(e, "expansion option") from e


def read_config_file(path: Path) -> dict[str, Any]:
    """Load a settings file into a dict keyed by setting name.

    Top-level keys may be camelCase (`resourceLocations`) or snake_case.
    An empty file yields `{}`.

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping.
    """
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if loaded is None:
        logger.warning("config_file_empty", path=str(path))
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(
            f"Config file {path} must contain a mapping",
            value=type(loaded).__name__,
        )
    return {to_snake(str(key)): value for key, value in loaded.items()}


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Settings read from one optional YAML file.

    A missing file contributes nothing, so the project and user files can
    both be listed unconditionally.
    """

    def __init__(self, settings_cls: type[BaseSettings], path: Path) -> None:
        super().__init__(settings_cls)
        self.path = path
        self._values = read_config_file(path) if path.is_file() else {}
        if self._values:
            logger.debug("config_file_loaded", path=str(path), keys=sorted(self._values))

    def get_field_value(
        self, field: FieldInfo, field_name: str
    ) -> tuple[Any, str, bool]:
        return self._values.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return {
            name: self._values[name]
            for name in self.settings_cls.model_fields
            if name in self._values
        }


class StudioConfig(BaseSettings):
    """Settings shared by every expansion run from the command line.

    Attributes:
        resource_locations: Repository alias to local checkout path.
        azure_compatible: Default block-scalar rendering mode.
        verbosity: Default log level when no -v/-q flag is given.
    """

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_STUDIO_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    resource_locations: dict[str, str] = Field(default_factory=dict)
    azure_compatible: bool = False
    verbosity: Literal["error", "warning", "info", "debug"] = "warning"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Earlier sources win: --config file, PIPELINE_STUDIO_* variables,
        # ./pipeline-studio.yaml, then the user file.
        return (
            init_settings,
            env_settings,
            YamlSettingsSource(settings_cls, Path.cwd() / PROJECT_CONFIG_NAME),
            YamlSettingsSource(settings_cls, get_user_config_path()),
        )


def get_user_config_path() -> Path:
    """`~/.config/pipeline-studio/config.yaml`"""
    return Path.home() / ".config" / "pipeline-studio" / "config.yaml"


def load_config(config_path: Path | None = None) -> StudioConfig:
    """Resolve settings for a CLI run.

    Args:
        config_path: File given with `--config`. Its settings override the
            environment and both YAML files.

    Raises:
        ConfigError: If the file is missing or unreadable, or a setting
            fails validation.
    """
    explicit: dict[str, Any] = {}
    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(
                f"Config file not found: {config_path}", value=str(config_path)
            )
        explicit = read_config_file(config_path)
        logger.debug("config_file_loaded", path=str(config_path), keys=sorted(explicit))

    try:
        return StudioConfig(**explicit)
    except ValidationError as e:
        raise _validation_config_error(e, "configuration") from e
