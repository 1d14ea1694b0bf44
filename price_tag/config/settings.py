"""
Application configuration

Values come from environment variables, or a ``.env`` file in the working
directory, so the CLI, the web backend and the tests can each point the
stores somewhere else. Environment variables win over the file.
"""

from pathlib import Path
from typing import Dict, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from price_tag.config.sizes import PRINT_DPI, REFERENCE_DPI
from price_tag.errors import ConfigError

ExportFormatName = Literal["png", "jpg", "pdf"]

ENV_FILE = ".env"


class AppConfig(BaseSettings):
    """Runtime configuration for stores and export"""
    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=True,
        extra="ignore",
    )

    data_dir: Path = Field(
        default=Path("./price_tag_data"),
        validation_alias=AliasChoices("data_dir", "PRICE_TAG_DATA_DIR"),
        description="Root directory of the local store",
    )
    supabase_url: str = Field(
        default="",
        validation_alias=AliasChoices("supabase_url", "SUPABASE_URL"),
        description="Supabase project URL",
    )
    supabase_anon_key: str = Field(
        default="",
        validation_alias=AliasChoices("supabase_anon_key", "SUPABASE_ANON_KEY"),
        description="Supabase anon (public) API key",
    )
    access_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("access_token", "SUPABASE_ACCESS_TOKEN"),
        description="Session token of the signed-in user",
    )
    http_timeout_s: float = Field(
        default=30.0,
        gt=0,
        validation_alias=AliasChoices("http_timeout_s", "PRICE_TAG_HTTP_TIMEOUT"),
        description="Timeout for cloud requests, in seconds",
    )

    @field_validator("supabase_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("access_token")
    @classmethod
    def _blank_token_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @property
    def remote_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


class ExportProfile(BaseModel):
    dpi: float = PRINT_DPI
    quality: float = 1.0


PRINT = ExportProfile(dpi=PRINT_DPI, quality=1.0)
HIGH_QUALITY = ExportProfile(dpi=PRINT_DPI, quality=1.0)
SCREEN = ExportProfile(dpi=REFERENCE_DPI, quality=0.92)

EXPORT_PROFILES: Dict[str, ExportProfile] = {
    "print": PRINT,
    "high_quality": HIGH_QUALITY,
    "screen": SCREEN,
}


def load_config(env_file: Optional[str] = ENV_FILE, **overrides) -> AppConfig:
    """
    Build an AppConfig from the environment and ``env_file``.

    Args:
        env_file: dotenv file to read, None to read the environment only
        **overrides: Field values that take precedence over both

    Raises:
        ConfigError: when a value does not validate (e.g. a non-numeric timeout)
    """
    try:
        return AppConfig(_env_file=env_file, **overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}") from e
