"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from rich.logging import RichHandler

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class StoreConfig(BaseModel):
    """Store access settings."""
    timeout_seconds: float = 5.0
    data_file: Optional[Path] = None

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        """Ensure store operations have a positive timeout."""
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value


class SchedulingConfig(BaseModel):
    """Limits applied by the scheduling service."""
    same_day_alternatives: int = 5
    alternatives_lookahead_days: int = 7
    max_alternatives: int = 5
    availability_default_days: int = 14
    min_duration_hours: float = 0.5
    max_duration_hours: float = 24.0

    @field_validator(
        "same_day_alternatives",
        "alternatives_lookahead_days",
        "max_alternatives",
        "availability_default_days",
    )
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value

    @model_validator(mode="after")
    def validate_duration_bounds(self) -> "SchedulingConfig":
        """Ensure the duration bounds form a non-empty range."""
        if not 0 < self.min_duration_hours <= self.max_duration_hours <= 24:
            raise ValueError(
                "Duration bounds must satisfy 0 < min_duration_hours <= max_duration_hours <= 24"
            )
        return self


class QuotationConfig(BaseModel):
    """Quotation defaults."""
    default_expiry_days: Optional[int] = 7

    @field_validator("default_expiry_days")
    @classmethod
    def validate_expiry(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            raise ValueError("default_expiry_days must be greater than zero")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Asia/Dubai"
    currency: str = "AED"
    log_level: str = "WARNING"
    store: StoreConfig = Field(default_factory=StoreConfig)
    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)
    quotation: QuotationConfig = Field(default_factory=QuotationConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, value: str) -> str:
        """Currencies are three-letter codes, stored upper-case."""
        if len(value) != 3 or not value.isalpha():
            raise ValueError(f"Currency must be a three-letter code, got {value!r}")
        return value.upper()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    @classmethod
    def load_or_default(cls, config_path: Optional[Path] = None) -> "AppConfig":
        """Load ``config_path`` (or the default location) when it exists, else defaults."""
        path = config_path or get_default_config_path()
        if config_path is None and not path.exists():
            return cls()
        return cls.load_from_yaml(path)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path


def configure_logging(level: str = "WARNING") -> None:
    """Route the package's log records through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
