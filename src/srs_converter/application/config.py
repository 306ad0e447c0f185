from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from srs_converter.domain.constants import EXPORT_VERSION

CONFIG_FILES = [
    Path.home() / ".config/srs-converter/config.toml",
    Path.home() / ".srs-converter.toml",
]


class ErrorHandling(str, Enum):
    STRICT = "strict"
    BEST_EFFORT = "best-effort"


class ConverterConfig(BaseSettings):
    """
    Configuration for srs-converter.
    Supports loading from:
    1. Environment variables (SRSCONV_*)
    2. Config file (~/.config/srs-converter/config.toml)
    3. Explicit overrides
    """

    model_config = SettingsConfigDict(
        env_prefix="SRSCONV_",
        extra="ignore",
    )

    error_handling: ErrorHandling = ErrorHandling.BEST_EFFORT
    # Parent directory for per-package working areas; system temp dir when unset.
    temp_root: Path | None = None
    temp_prefix: str = "srsconverter-"
    # Only the legacy generation is read and written.
    export_version: int = EXPORT_VERSION

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        toml_file = next((f for f in CONFIG_FILES if f.exists()), None)

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("export_version")
    @classmethod
    def check_export_version(cls, v: int) -> int:
        if v != EXPORT_VERSION:
            raise ValueError(f"Only export version {EXPORT_VERSION} is supported, got {v}")
        return v

    @field_validator("temp_root", mode="before")
    @classmethod
    def resolve_temp_root(cls, v: Any) -> Path | None:
        if v:
            return Path(v).expanduser().resolve()
        return None


class ConversionOptions(BaseModel):
    """Per-call options. ``error_handling`` decides how recoverable errors end."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    error_handling: ErrorHandling = Field(
        default=ErrorHandling.BEST_EFFORT, alias="errorHandling"
    )

    @classmethod
    def from_config(cls, config: ConverterConfig) -> "ConversionOptions":
        return cls(error_handling=config.error_handling)


def resolve_config(overrides: dict[str, Any] | None = None) -> ConverterConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in ConverterConfig
    2. ~/.config/srs-converter/config.toml (if exists)
    3. Environment variables (SRSCONV_*)
    4. overrides (non-None values only)
    """
    clean = {k: v for k, v in (overrides or {}).items() if v is not None}
    return ConverterConfig(**clean)
