"""
FeedHook Configuration System
============================

Configuration management with a JSON config file, environment variables and
Pydantic models. Precedence: config file > environment > Field defaults.
"""

import json
import os
from pathlib import Path
from typing import List, Optional, Any, Dict
from enum import Enum

from pydantic import BaseModel, Field, field_validator, AliasChoices
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode, ValidationError
from ..utils.validators import URLValidator


DEFAULT_CONFIG_FILE = "config.json"


class ImageMode(str, Enum):
    """How an image is picked for a feed's notifications."""
    NONE = "none"    # Never attach an image
    HTML = "html"    # First <img> found in the entry description


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _require_http_url(value: str) -> str:
    """Shared pydantic validator body; pydantic only converts ValueError."""
    try:
        return URLValidator.validate_http_url(value)
    except ValidationError as e:
        raise ValueError(e.user_message) from e


class FeedSettings(BaseModel):
    """A single configured feed."""
    url: str = Field(..., description="The RSS/Atom feed URL to check")
    image_mode: ImageMode = Field(
        default=ImageMode.NONE,
        validation_alias=AliasChoices("image_mode", "imageMode"),
        serialization_alias="imageMode",
        description="'html' attaches the first image tag found in the entry to the webhook, 'none' does nothing",
    )

    model_config = {"frozen": True, "populate_by_name": True}

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        return _require_http_url(v)


class HealthCheckSettings(BaseModel):
    """Optional heartbeat endpoint called every N seconds."""
    endpoint: str = Field(..., description="The heartbeat URL to call")
    interval: float = Field(..., ge=1, description="How often (in seconds) to call the heartbeat URL")
    method: str = Field(default="GET", description="The HTTP method to use (GET/POST/etc)")

    @field_validator('endpoint')
    @classmethod
    def validate_endpoint(cls, v):
        return _require_http_url(v)

    @field_validator('method')
    @classmethod
    def validate_method(cls, v):
        v = (v or "").strip().upper()
        if not v.isalpha():
            raise ValueError("method must be an HTTP verb such as GET or POST")
        return v


class FetchSettings(BaseModel):
    """Feed fetch retry policy."""
    max_attempts: int = Field(default=3, ge=1, le=10, description="Attempts per fetch before giving up")
    min_delay: float = Field(default=1.0, ge=0.0, description="Backoff floor in seconds")
    max_delay: float = Field(default=10.0, ge=0.0, description="Backoff ceiling in seconds")
    request_timeout: int = Field(default=30, ge=1, le=300, description="HTTP timeout in seconds")


class HealthRetrySettings(BaseModel):
    """Heartbeat retry policy."""
    max_attempts: int = Field(default=2, ge=1, le=10, description="Attempts per heartbeat")
    min_delay: float = Field(default=1.0, ge=0.0, description="Backoff floor in seconds")
    max_delay: float = Field(default=2.5, ge=0.0, description="Backoff ceiling in seconds")


class DeliverySettings(BaseModel):
    """Webhook delivery configuration."""
    dry_run: bool = Field(default=False, description="Log payloads instead of posting them")
    max_title_length: int = Field(default=256, ge=16, description="Embed title limit")
    max_description_length: int = Field(default=4096, ge=64, description="Embed description limit")


class SchedulerSettings(BaseModel):
    """Polling interval policy."""
    max_interval_minutes: float = Field(default=60, gt=0, description="Upper bound for the feed's ttl hint")
    default_interval_minutes: float = Field(default=60, gt=0, description="Used when the feed has no ttl")


class DatabaseSettings(BaseModel):
    """Dedup store configuration."""
    path: str = Field(default=".data/feedhook.db", description="SQLite database file path")
    pool_size: int = Field(default=2, ge=1, le=20, description="Connection pool size")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/feedhook.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class FeedHookSettings(BaseSettings):
    """Main application settings."""

    feeds: List[FeedSettings] = Field(
        ...,
        min_length=1,
        description="The RSS/Atom feed(s) to check, either a URL or an object for per-feed configuration",
    )
    webhooks: List[str] = Field(..., min_length=1, description="The webhook(s) to send the feed(s) to")
    health_check: Optional[HealthCheckSettings] = Field(
        default=None,
        serialization_alias="healthCheck",
        description="Optional health check endpoint to call every N seconds, so you can monitor the script",
    )

    fetch: FetchSettings = Field(default_factory=FetchSettings)
    health: HealthRetrySettings = Field(default_factory=HealthRetrySettings)
    delivery: DeliverySettings = Field(default_factory=DeliverySettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="FeedHook", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "FEEDHOOK_",
        "extra": "ignore",
    }

    @field_validator('feeds', mode='before')
    @classmethod
    def normalise_feeds(cls, v):
        """Bare URL strings become feeds with image mode 'none'."""
        if isinstance(v, (list, tuple)):
            return [{"url": item} if isinstance(item, str) else item for item in v]
        return v

    @field_validator('webhooks')
    @classmethod
    def validate_webhooks(cls, v):
        return [_require_http_url(url) for url in v]

    def validate_configuration(self) -> None:
        """Validate the complete configuration beyond field constraints."""
        errors = []

        if not self.feeds:
            errors.append("No feeds given in config")
        if not self.webhooks:
            errors.append("No webhooks given in config")

        urls = [feed.url for feed in self.feeds]
        duplicates = sorted({url for url in urls if urls.count(url) > 1})
        if duplicates:
            errors.append(f"Duplicate feed URLs: {', '.join(duplicates)}")

        if self.fetch.min_delay > self.fetch.max_delay:
            errors.append("fetch.min_delay must not exceed fetch.max_delay")
        if self.health.min_delay > self.health.max_delay:
            errors.append("health.min_delay must not exceed health.max_delay")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


# camelCase keys accepted at the top level of config.json
_FILE_KEY_ALIASES = {
    "healthCheck": "health_check",
}


def read_config_file(config_path: str) -> Dict[str, Any]:
    """Read a JSON config file into keyword arguments for FeedHookSettings.

    Raises:
        ConfigurationError: If the file is missing or not a JSON object
    """
    path = Path(config_path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigurationError(
            f"Config file not found: {path}",
            config_key="config_file",
            error_code=ErrorCode.CONFIG_MISSING,
        )
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Config file {path} is not valid JSON: {e}",
            config_key="config_file",
            error_code=ErrorCode.CONFIG_PARSE_ERROR,
        )

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file {path} must contain a JSON object",
            config_key="config_file",
            error_code=ErrorCode.CONFIG_PARSE_ERROR,
        )

    # "$schema" is allowed so editors can validate against config.schema.json
    data.pop("$schema", None)
    return {_FILE_KEY_ALIASES.get(key, key): value for key, value in data.items()}


def load_settings(config_path: Optional[str] = None, **overrides: Any) -> FeedHookSettings:
    """Load settings from the config file, environment variables and defaults.

    Args:
        config_path: JSON config file; falls back to $FEEDHOOK_CONFIG_FILE,
            then ./config.json when present
        **overrides: Values applied on top of everything else

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    config_path = config_path or os.getenv("FEEDHOOK_CONFIG_FILE")
    if not config_path and Path(DEFAULT_CONFIG_FILE).exists():
        config_path = DEFAULT_CONFIG_FILE

    file_values = read_config_file(config_path) if config_path else {}

    try:
        # Init kwargs take precedence over environment variables and .env values
        settings = FeedHookSettings(**{**file_values, **overrides})
        settings.validate_configuration()
        return settings

    except Exception as e:
        if isinstance(e, ConfigurationError):
            raise
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        )


def export_config_schema(output_path: str) -> Path:
    """Write the JSON Schema of the configuration file format.

    Keys use the camelCase spelling of config.json (``healthCheck``,
    ``imageMode``).
    """
    schema = FeedHookSettings.model_json_schema(by_alias=True, mode="serialization")
    schema.setdefault("properties", {})["$schema"] = {"type": "string"}

    path = Path(output_path)
    path.write_text(json.dumps(schema, indent=2), encoding="utf-8")
    return path
