"""Settings models and configuration loading for the temperature monitor."""

from datetime import timedelta
from decimal import Decimal
from functools import cached_property, lru_cache
from typing import Annotated, Any, Self

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    HttpUrl,
    SecretStr,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from tempmon.lib.config.constants import (
    DEFAULT_INITIAL_DELAY_MIN,
    DEFAULT_REPEAT_INTERVAL_MIN,
    MIN_RESTORE_INTERVAL,
)
from tempmon.lib.config.enums import NotificationBackend
from tempmon.logging import get_logger

_logger = get_logger("lib.config")


def _parse_bool(v: Any) -> bool:
    """Parse boolean from string '1'/'0', 'true'/'false' or actual bool."""
    if isinstance(v, bool):
        return v
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "on")
    return bool(v)


_BoolFromStr = Annotated[bool, BeforeValidator(_parse_bool)]


def _validate_email_or_empty(v: str) -> str:
    """Validate email format, allowing empty string."""
    if not v:
        return v
    from pydantic import validate_email

    validate_email(v)
    return v


def _validate_http_url_or_empty(v: str) -> str:
    """Validate HTTP URL format, allowing empty string."""
    if not v:
        return v
    HttpUrl(v)
    return v


_EmailOrEmpty = Annotated[str, AfterValidator(_validate_email_or_empty)]
_HttpUrlOrEmpty = Annotated[str, AfterValidator(_validate_http_url_or_empty)]


class GmailSettings(BaseModel):
    """Gmail notification settings."""

    model_config = ConfigDict(frozen=True)

    sender: str = ""
    recipients: str = ""  # Comma-separated list
    username: _EmailOrEmpty = ""
    password: SecretStr = SecretStr("")
    subject: str = "Temperature Monitor"


class SlackSettings(BaseModel):
    """Slack notification settings."""

    model_config = ConfigDict(frozen=True)

    webhook_url: _HttpUrlOrEmpty = ""


class ThresholdSettings(BaseModel):
    """Acceptable temperature range, inclusive at both ends."""

    model_config = ConfigDict(frozen=True)

    min_temperature: Decimal
    max_temperature: Decimal


class TimingSettings(BaseModel):
    """Alert cadence settings."""

    model_config = ConfigDict(frozen=True)

    initial_delay_min: int = DEFAULT_INITIAL_DELAY_MIN
    repeat_interval_min: int = DEFAULT_REPEAT_INTERVAL_MIN
    notify_on_restore: bool = True

    @property
    def initial_delay(self) -> timedelta:
        """How long a sensor must stay out of range before the first alert."""
        return timedelta(minutes=self.initial_delay_min)

    @property
    def repeat_interval(self) -> timedelta:
        """Minimum time between out-of-range alerts of one excursion."""
        return timedelta(minutes=self.repeat_interval_min)

    @property
    def min_restore_interval(self) -> timedelta:
        """Minimum time between restore alerts (not configurable)."""
        return MIN_RESTORE_INTERVAL


class NotificationSettings(BaseModel):
    """Notification service settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    backends: list[NotificationBackend] = []
    gmail: GmailSettings = GmailSettings()
    slack: SlackSettings = SlackSettings()
    max_retries: int = 3
    initial_backoff_sec: int = 2
    timeout_sec: int = 30


class EventBusSettings(BaseModel):
    """Redis event bus settings."""

    model_config = ConfigDict(frozen=True)

    redis_url: str = "redis://localhost:6379/0"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    db_path: str = "tempmon.sqlite3"
    db_timeout_sec: float = 30.0

    # Logging
    log_debug: _BoolFromStr = False

    # Temperature range (°F), both required
    min_temperature: Decimal | None = None
    max_temperature: Decimal | None = None

    # Alert cadence, None means "use the default"
    initial_delay_min: int | None = Field(default=None, ge=0)
    repeat_interval_min: int | None = Field(default=None, ge=0)
    notify_on_restore: _BoolFromStr = True

    # Display names keyed by sensor id, e.g. SENSOR_LABELS='{"12": "Garage"}'
    sensor_labels: dict[str, str] = {}

    # Notifications
    enable_notification_service: _BoolFromStr = False
    notification_backends: str = "gmail"
    gmail_sender: str = ""
    gmail_recipients: str = ""  # Comma-separated list
    gmail_username: _EmailOrEmpty = ""
    gmail_password: SecretStr = SecretStr("")
    gmail_subject: str = "Temperature Monitor"
    slack_webhook_url: _HttpUrlOrEmpty = ""
    notification_max_retries: int = Field(default=3, ge=0)
    notification_initial_backoff_sec: int = Field(default=2, ge=0)
    notification_timeout_sec: int = Field(default=30, ge=1)

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    @cached_property
    def thresholds(self) -> ThresholdSettings:
        """Get threshold settings as nested object."""
        assert self.min_temperature is not None
        assert self.max_temperature is not None
        return ThresholdSettings(
            min_temperature=self.min_temperature,
            max_temperature=self.max_temperature,
        )

    @cached_property
    def timing(self) -> TimingSettings:
        """Get alert cadence settings, substituting defaults for unset values."""
        initial_delay = self.initial_delay_min
        if initial_delay is None:
            initial_delay = DEFAULT_INITIAL_DELAY_MIN
            _logger.debug(
                "initial_delay_min not set, defaulting to %d minutes",
                initial_delay,
            )
        repeat_interval = self.repeat_interval_min
        if repeat_interval is None:
            repeat_interval = DEFAULT_REPEAT_INTERVAL_MIN
            _logger.debug(
                "repeat_interval_min not set, defaulting to %d minutes",
                repeat_interval,
            )
        return TimingSettings(
            initial_delay_min=initial_delay,
            repeat_interval_min=repeat_interval,
            notify_on_restore=self.notify_on_restore,
        )

    @cached_property
    def notifications(self) -> NotificationSettings:
        """Get notification settings as nested object."""
        backends = [
            NotificationBackend(b.strip())
            for b in self.notification_backends.split(",")
            if b.strip()
        ]
        return NotificationSettings(
            enabled=self.enable_notification_service,
            backends=backends,
            gmail=GmailSettings(
                sender=self.gmail_sender,
                recipients=self.gmail_recipients,
                username=self.gmail_username,
                password=self.gmail_password,
                subject=self.gmail_subject,
            ),
            slack=SlackSettings(webhook_url=self.slack_webhook_url),
            max_retries=self.notification_max_retries,
            initial_backoff_sec=self.notification_initial_backoff_sec,
            timeout_sec=self.notification_timeout_sec,
        )

    @cached_property
    def eventbus(self) -> EventBusSettings:
        """Get event bus settings."""
        return EventBusSettings(redis_url=self.redis_url)

    def sensor_label(self, sensor_id: str) -> str | None:
        """Get the configured display name for a sensor, if any."""
        return self.sensor_labels.get(sensor_id)

    @model_validator(mode="after")
    def validate_settings(self) -> Self:
        """Validate cross-field configuration constraints."""
        errors: list[str] = []

        if self.min_temperature is None:
            errors.append("MIN_TEMPERATURE is not set")
        if self.max_temperature is None:
            errors.append("MAX_TEMPERATURE is not set")
        if (
            self.min_temperature is not None
            and self.max_temperature is not None
            and self.min_temperature > self.max_temperature
        ):
            errors.append(
                f"MIN_TEMPERATURE ({self.min_temperature}) must not be greater "
                f"than MAX_TEMPERATURE ({self.max_temperature})"
            )

        if self.enable_notification_service:
            backends = [
                b.strip()
                for b in self.notification_backends.split(",")
                if b.strip()
            ]
            if not backends:
                errors.append(
                    "Notifications enabled but NOTIFICATION_BACKENDS is empty"
                )
            known = {str(b) for b in NotificationBackend}
            unknown = [b for b in backends if b not in known]
            if unknown:
                errors.append(
                    f"Unknown notification backends: {', '.join(unknown)}"
                )

            if NotificationBackend.GMAIL in backends:
                missing = []
                if not self.gmail_sender:
                    missing.append("GMAIL_SENDER")
                if not self.gmail_recipients:
                    missing.append("GMAIL_RECIPIENTS")
                if not self.gmail_username:
                    missing.append("GMAIL_USERNAME")
                if not self.gmail_password.get_secret_value():
                    missing.append("GMAIL_PASSWORD")
                if missing:
                    errors.append(
                        f"Gmail enabled but missing: {', '.join(missing)}"
                    )

            if NotificationBackend.SLACK in backends:
                if not self.slack_webhook_url:
                    errors.append(
                        "Slack enabled but SLACK_WEBHOOK_URL is not set"
                    )

        if errors:
            raise ValueError(
                "Configuration validation failed:\n  - "
                + "\n  - ".join(errors)
            )

        return self


# Settings override for testing - allows injecting custom Settings without
# modifying environment variables or clearing the lru_cache.
_settings_override: Settings | None = None


@lru_cache(maxsize=1)
def _load_settings() -> Settings:
    """Load settings from environment (cached)."""
    return Settings()


def get_settings() -> Settings:
    """Get the global settings instance.

    Returns the test override if set, otherwise loads from environment
    variables (cached after first load). For testing, use set_settings()
    from tempmon.lib.config.testing to override.
    """
    if _settings_override is not None:
        return _settings_override
    return _load_settings()
