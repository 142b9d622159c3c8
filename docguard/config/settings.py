"""
Configuration settings for the DocGuard document integrity engine.

Settings are grouped into nested Pydantic sections (file validation, revision
validation, logging) and loaded once from environment variables or a .env
file. Every section is frozen after load: the limits below are process-wide
constants for the lifetime of the engine.
"""

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FileValidationSettings(BaseModel):
    """File name, extension, size and checksum limits."""

    model_config = ConfigDict(frozen=True)

    max_file_name_length: int = Field(
        default=128,
        description="Maximum file name length (matches the document store column)"
    )
    min_file_name_length: int = Field(
        default=1,
        description="Minimum file name length"
    )
    max_extension_length: int = Field(
        default=5,
        description="Maximum extension length, excluding the leading dot"
    )
    min_extension_length: int = Field(
        default=1,
        description="Minimum extension length, excluding the leading dot"
    )
    max_file_size_bytes: int = Field(
        default=100 * 1024 * 1024,
        description="Maximum accepted file size (100 MiB)"
    )
    min_file_size_bytes: int = Field(
        default=1,
        description="Minimum accepted file size"
    )
    checksum_length: int = Field(
        default=64,
        description="Length of a SHA-256 hex digest"
    )
    max_file_name_suggestions: int = Field(
        default=10,
        description="Upper bound on alternative file names returned"
    )
    diagnostic_prefix_bytes: int = Field(
        default=16,
        description="Bytes of unrecognized content echoed as hex for diagnostics"
    )


class RevisionValidationSettings(BaseModel):
    """Revision numbering and temporal limits."""

    model_config = ConfigDict(frozen=True)

    min_revision_number: int = Field(
        default=1,
        description="First revision number of every document"
    )
    max_revision_number: int = Field(
        default=999_999,
        description="Highest revision number accepted"
    )
    min_allowed_date: datetime = Field(
        default=datetime(1980, 1, 1, tzinfo=timezone.utc),
        description="Earliest creation or modification date accepted"
    )
    future_date_tolerance_minutes: int = Field(
        default=1,
        description="Clock skew tolerated for dates slightly in the future"
    )
    max_date_span_days: int = Field(
        default=365 * 50,
        description="Maximum distance between creation and modification dates"
    )
    max_revision_suggestions: int = Field(
        default=5,
        description="Upper bound on revision number suggestions"
    )

    @property
    def future_date_tolerance(self) -> timedelta:
        return timedelta(minutes=self.future_date_tolerance_minutes)

    @property
    def max_date_span(self) -> timedelta:
        return timedelta(days=self.max_date_span_days)


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    format: str = Field(
        default="text",
        description="Log format (json/text)"
    )

    enable_correlation_ids: bool = Field(
        default=True,
        description="Enable correlation ID tracking"
    )

    enable_audit_logging: bool = Field(
        default=True,
        description="Emit an audit event for every validation call"
    )

    log_file_path: str = Field(
        default="",
        description="Optional path to a log file; empty disables file logging"
    )

    def get_log_level_numeric(self) -> int:
        """
        Get numeric log level for Python logging.

        Returns:
            Numeric log level
        """
        import logging
        return getattr(logging, self.level.upper(), logging.INFO)


class Settings(BaseSettings):
    """
    Engine configuration settings.

    Values come from defaults, then a .env file, then environment variables
    (e.g. DOCGUARD_FILE_VALIDATION__MAX_FILE_SIZE_BYTES=52428800).
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    app_name: str = Field(
        default="DocGuard",
        description="Application name"
    )

    environment: str = Field(
        default="development",
        description="Environment (development/staging/production)"
    )

    file_validation: FileValidationSettings = Field(
        default_factory=FileValidationSettings,
        description="File validation limits"
    )

    revision_validation: RevisionValidationSettings = Field(
        default_factory=RevisionValidationSettings,
        description="Revision validation limits"
    )

    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration"
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary for JSON serialization."""
        return self.model_dump(
            exclude_unset=False,
            exclude_none=False
        )

    def get_nested_setting(self, path: str, default: Any = None) -> Any:
        """
        Get a nested setting using dot notation.

        Args:
            path: Dot-separated path (e.g., "file_validation.max_file_size_bytes")
            default: Default value if path not found

        Returns:
            Setting value or default
        """
        try:
            current = self
            for part in path.split('.'):
                current = getattr(current, part)
            return current
        except AttributeError:
            return default

    def validate_configuration(self) -> Dict[str, List[str]]:
        """
        Validate the entire configuration.

        Returns:
            Dictionary with validation errors by section
        """
        errors: Dict[str, List[str]] = {}

        def add(section: str, message: str) -> None:
            errors.setdefault(section, []).append(message)

        files = self.file_validation
        revisions = self.revision_validation

        ranges = [
            ("file_validation", "file_name_length",
             files.min_file_name_length, files.max_file_name_length),
            ("file_validation", "extension_length",
             files.min_extension_length, files.max_extension_length),
            ("file_validation", "file_size_bytes",
             files.min_file_size_bytes, files.max_file_size_bytes),
            ("revision_validation", "revision_number",
             revisions.min_revision_number, revisions.max_revision_number),
        ]
        for section, name, low, high in ranges:
            if low < 1:
                add(section, f"Must be positive integer: min_{name} = {low}")
            if high < low:
                add(section, f"max_{name} ({high}) is below min_{name} ({low})")

        positive_int_fields = [
            ("file_validation.checksum_length", files.checksum_length),
            ("file_validation.max_file_name_suggestions", files.max_file_name_suggestions),
            ("file_validation.diagnostic_prefix_bytes", files.diagnostic_prefix_bytes),
            ("revision_validation.max_date_span_days", revisions.max_date_span_days),
            ("revision_validation.max_revision_suggestions", revisions.max_revision_suggestions),
        ]
        for field_path, value in positive_int_fields:
            if value <= 0:
                add(field_path.split('.')[0], f"Must be positive integer: {field_path} = {value}")

        if revisions.future_date_tolerance_minutes < 0:
            add("revision_validation", "future_date_tolerance_minutes cannot be negative")

        if revisions.min_allowed_date.tzinfo is None:
            add("revision_validation", "min_allowed_date must be timezone-aware")

        if self.logging.format not in ("json", "text"):
            add("logging", f"Unknown log format: {self.logging.format}")

        return errors


@lru_cache()
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()


# Environment variable mapping examples:
# DOCGUARD_FILE_VALIDATION__MAX_FILE_SIZE_BYTES=52428800
# DOCGUARD_REVISION_VALIDATION__MAX_DATE_SPAN_DAYS=3650
# DOCGUARD_LOGGING__LEVEL=DEBUG
# DOCGUARD_LOGGING__FORMAT=json
