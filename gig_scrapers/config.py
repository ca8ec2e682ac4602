from pathlib import Path
from typing import Optional

from pydantic import Field, AliasChoices, HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class GlobalScraperSettings(BaseSettings):
    """Defaults applied when a site config leaves browser options out."""
    default_user_agent: str = Field(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36",
        validation_alias=AliasChoices('SCRAPER_GLOBAL_DEFAULT_USER_AGENT', 'DEFAULT_USER_AGENT')
    )
    default_timeout_ms: int = Field(30000, validation_alias=AliasChoices('SCRAPER_GLOBAL_DEFAULT_TIMEOUT_MS', 'DEFAULT_TIMEOUT_MS'))
    default_headless_browser: bool = Field(True, validation_alias=AliasChoices('SCRAPER_GLOBAL_DEFAULT_HEADLESS_BROWSER', 'DEFAULT_HEADLESS_BROWSER'))
    default_timezone: str = Field("UTC", validation_alias=AliasChoices('SCRAPER_GLOBAL_DEFAULT_TIMEZONE', 'DEFAULT_TIMEZONE'))

    model_config = SettingsConfigDict(
        env_prefix='SCRAPER_GLOBAL_',
        extra='ignore',
        populate_by_name=True
    )


class FileOutputSettings(BaseSettings):
    """Where configs are looked up and where logs and debug artifacts go."""
    configs_directory: Path = Field(Path("data/scraper-configs"), validation_alias=AliasChoices('FILE_OUTPUT_CONFIGS_DIRECTORY', 'CONFIGS_DIRECTORY'))
    debug_artifact_directory: Path = Field(Path("."), validation_alias=AliasChoices('FILE_OUTPUT_DEBUG_ARTIFACT_DIRECTORY', 'DEBUG_ARTIFACT_DIRECTORY'))
    enable_log_file: bool = Field(False, validation_alias=AliasChoices('FILE_OUTPUT_ENABLE_LOG_FILE', 'ENABLE_LOG_FILE'))
    log_output_directory: Path = Field(Path("scraper_logs"), validation_alias=AliasChoices('FILE_OUTPUT_LOG_OUTPUT_DIRECTORY', 'LOG_OUTPUT_DIRECTORY'))

    model_config = SettingsConfigDict(
        env_prefix='FILE_OUTPUT_',
        extra='ignore',
        populate_by_name=True
    )


class SentrySettings(BaseSettings):
    """Sentry error tracking; disabled while no DSN is set."""
    dsn: Optional[HttpUrl] = Field(None, validation_alias=AliasChoices('SENTRY_DSN'))
    environment: Optional[str] = Field(None, description="Overrides main app environment for Sentry if needed.")
    traces_sample_rate: float = Field(0.0, ge=0.0, le=1.0, description="Sentry performance monitoring traces sample rate.")

    model_config = SettingsConfigDict(
        env_prefix='SENTRY_',
        extra='ignore',
        populate_by_name=True
    )


class Settings(BaseSettings):
    """Top-level settings; each nested section also reads its own env prefix."""
    environment: str = Field("development", validation_alias=AliasChoices('APP_ENV', 'ENVIRONMENT'))
    log_level: str = Field("INFO", validation_alias=AliasChoices('APP_LOG_LEVEL', 'LOG_LEVEL'))

    scraper_globals: GlobalScraperSettings = GlobalScraperSettings()
    file_outputs: FileOutputSettings = FileOutputSettings()
    sentry: SentrySettings = SentrySettings()

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        env_nested_delimiter='__',
        extra='ignore',
        populate_by_name=True
    )


settings = Settings()
