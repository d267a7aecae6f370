"""
Configuration Management for Meter Reader

Every tunable of the app lives here as a pydantic-settings class, read from
environment variables (and `.env`) with one prefix per concern:
OCR_, STORAGE_, GOOGLE_SHEETS_, plus the unprefixed app settings.

Only the Google Sheets section has required fields, and it is only loaded
when that backend is selected.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class OcrSettings(BaseSettings):
    """OCR.space text recognition configuration."""

    model_config = SettingsConfigDict(
        env_prefix="OCR_",
        extra="ignore"
    )

    api_key: str = Field(
        default="helloworld",
        description="OCR.space API key (the default is the public demo key)"
    )
    api_url: str = Field(
        default="https://api.ocr.space/parse/image",
        description="Recognition endpoint"
    )
    language: str = Field(
        default="eng",
        description="Recognition language"
    )
    engine: int = Field(
        default=2,
        ge=1,
        le=3,
        description="OCR.space engine number"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Upper bound for one recognition call"
    )


class StorageSettings(BaseSettings):
    """Key-value persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        extra="ignore"
    )

    backend: Literal["memory", "json", "google_sheets"] = Field(
        default="json",
        description="Which key-value store to use"
    )
    json_path: str = Field(
        default="meter_data.json",
        description="File used by the JSON backend"
    )
    key_prefix: str = Field(
        default="meterReadings",
        description="Prefix for the persisted keys"
    )

    @property
    def meters_key(self) -> str:
        return f"{self.key_prefix}_meters"

    @property
    def readings_key(self) -> str:
        return f"{self.key_prefix}_readings"

    @property
    def reset_day_key(self) -> str:
        return f"{self.key_prefix}_resetDate"


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )
    store_sheet_name: str = Field(
        default="MeterStore",
        description="Name of the key/value worksheet"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Missing credentials only warn; the file may be mounted after start."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Limits for captured photos, the default reset day and report/export options.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Billing period
    default_reset_day: int = Field(
        default=1,
        ge=1,
        le=28,
        description="Day of month a new billing period starts when none is stored"
    )

    # Capture limits
    max_upload_size_mb: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum capture file size in MB"
    )
    supported_image_formats: str = Field(
        default="jpg,jpeg,png,webp",
        description="Comma-separated list of supported image formats"
    )
    jpeg_quality: int = Field(
        default=80,
        ge=10,
        le=100,
        description="JPEG quality used when storing captured photos"
    )

    # Reporting / transfer
    recent_readings_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="How many readings the recent list shows"
    )
    export_filename: str = Field(
        default="meter_readings.csv",
        description="Default file name for exports"
    )

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",")]

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Entry point to every settings section.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sections load on access, so an unused backend needs no configuration

    @property
    def ocr(self) -> OcrSettings:
        return OcrSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings.

    Tests that change the environment call get_settings.cache_clear().
    """
    return Settings()


def validate_all_settings() -> dict[str, Any]:
    """
    Try loading every section.

    Returns {section: loaded_ok} plus "<section>_error" messages for failures.
    Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    sections = {
        "ocr": lambda: settings.ocr,
        "storage": lambda: settings.storage,
        "google_sheets": lambda: settings.google_sheets,
        "app": lambda: settings.app,
    }
    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
