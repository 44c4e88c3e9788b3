from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from sheetdrill.domain.constants import (
    CARD_DATA_SHEET,
    CARD_STATS_SHEET,
    DEFAULT_ADVANCE_DELAY,
    FLUSH_EVERY_ANSWERS,
    REQUEST_TIMEOUT,
    SHEETS_API_BASE,
)
from sheetdrill.domain.models import AdvanceMode, StudyMode


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/sheetdrill/config.toml",
        Path.home() / ".sheetdrill.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for sheetdrill.
    Supports loading from:
    1. Environment variables (SHEETDRILL_*)
    2. Config file (~/.config/sheetdrill/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="SHEETDRILL_",
        extra="ignore",
    )

    # Store
    backend: Literal["sheets", "local"] = "sheets"
    spreadsheet: str | None = None
    local_dir: Path | None = None
    api_base_url: str = SHEETS_API_BASE
    request_timeout: float = REQUEST_TIMEOUT
    content_sheet: str = CARD_DATA_SHEET
    stats_sheet: str = CARD_STATS_SHEET

    # Credentials
    access_token: str | None = None
    token_file: Path | None = None

    # Study
    study_mode: StudyMode = StudyMode.FRONT_ONLY
    advance_mode: AdvanceMode = AdvanceMode.DELAY
    advance_delay: float = Field(default=DEFAULT_ADVANCE_DELAY, ge=0)
    flush_every: int = Field(default=FLUSH_EVERY_ANSWERS, ge=1)
    show_pronunciation: bool = True
    seed: int | None = None

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

        toml_file = next((f for f in config_files() if f.exists()), None)

        # Earlier sources win: CLI overrides, then environment, then the file.
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("local_dir", "token_file", mode="before")
    @classmethod
    def resolve_path(cls, v: Any) -> Path | None:
        if v is None or v == "":
            return None
        return Path(v).expanduser().resolve()


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/sheetdrill/config.toml (if exists)
    3. Environment variables (SHEETDRILL_*)
    4. cli_overrides (passed from Typer; None values are dropped)
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    config = AppConfig(**overrides)

    if config.backend == "local" and config.local_dir is None:
        config.local_dir = Path.cwd()

    return config
