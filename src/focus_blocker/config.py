"""
Configuration dataclasses for the focus blocker engine.

This module defines all configuration structures used throughout the system,
including persistence, logging, capability probes, nuclear lock durations,
the periodic clock and lock-transition notifications.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


DEFAULT_HOSTS_FILE = "/etc/hosts"
WINDOWS_HOSTS_FILE = r"C:\Windows\System32\drivers\etc\hosts"


@dataclass
class RetryConfig:
    """Retry behavior for notification delivery."""

    max_retries: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 60.0


@dataclass
class WebhookConfig:
    """Generic webhook notification channel configuration."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class NotificationConfig:
    """Notification channels configuration."""

    webhook: Optional[WebhookConfig] = None
    retry: RetryConfig = field(default_factory=RetryConfig)


@dataclass
class PersistenceConfig:
    """Persistence and state storage configuration."""

    state_file_path: Path
    hmac_secret: str


@dataclass
class LoggingConfig:
    """Logging and audit configuration."""

    level: str = "info"  # 'debug', 'info', 'warn', 'error'
    audit_mode: bool = False
    audit_signing_key: Optional[str] = None
    output_format: str = "both"  # 'json', 'text', 'both'


@dataclass
class ProbeConfig:
    """Capability probe configuration."""

    hosts_file_path: Optional[str] = None  # None: the platform hosts file
    timeout_seconds: float = 5.0


@dataclass
class NuclearConfig:
    """
    Nuclear lock configuration.

    allowed_durations of None accepts any positive number of minutes.
    """

    allowed_durations: Optional[list[int]] = None


@dataclass
class ClockConfig:
    """Periodic clock configuration."""

    tick_seconds: float = 60.0


@dataclass
class EngineConfig:
    """Main configuration combining all sub-configurations."""

    persistence: Optional[PersistenceConfig] = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    probes: ProbeConfig = field(default_factory=ProbeConfig)
    nuclear: NuclearConfig = field(default_factory=NuclearConfig)
    clock: ClockConfig = field(default_factory=ClockConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    language: str = "de"  # 'de' or 'en'


DEFAULT_HMAC_SECRET = "default-secret-change-me"

_LOG_LEVELS = ("debug", "info", "warn", "error")
_OUTPUT_FORMATS = ("json", "text", "both")


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def validate_config(config: EngineConfig) -> ConfigValidationResult:
    """
    Validate an engine configuration.

    Checks:
    - Language, log level and output format are supported
    - Persistence has an HMAC secret that is not the default value
    - Nuclear durations and probe timeout are positive
    - The webhook URL uses HTTPS
    """
    errors: list[str] = []
    warnings: list[str] = []

    if config.language not in ("de", "en"):
        errors.append(f"Unsupported language: {config.language}")

    if config.logging.level not in _LOG_LEVELS:
        errors.append(f"Unsupported log level: {config.logging.level}")
    if config.logging.output_format not in _OUTPUT_FORMATS:
        errors.append(f"Unsupported log output format: {config.logging.output_format}")
    if config.logging.audit_mode and not config.logging.audit_signing_key:
        errors.append("Audit mode is enabled but no signing key is configured")

    if config.persistence is None:
        warnings.append("Persistence is disabled - state is lost on exit")
    elif not config.persistence.hmac_secret:
        errors.append("HMAC secret is not configured")
    elif config.persistence.hmac_secret == DEFAULT_HMAC_SECRET:
        warnings.append("HMAC secret is using default value - please change for production")

    durations = config.nuclear.allowed_durations
    if durations is not None:
        if not durations:
            errors.append("allowed_durations is empty - nuclear option can never be activated")
        for duration in durations:
            if isinstance(duration, bool) or not isinstance(duration, int) or duration <= 0:
                errors.append(f"Invalid nuclear duration: {duration!r}")

    if config.probes.timeout_seconds <= 0:
        errors.append("Probe timeout must be positive")
    if config.clock.tick_seconds <= 0:
        errors.append("Clock tick interval must be positive")

    webhook = config.notifications.webhook
    if webhook is not None and not webhook.url.lower().startswith("https://"):
        errors.append(f"Webhook URL must use HTTPS: {webhook.url}")
    if config.notifications.retry.max_retries < 0:
        errors.append("max_retries cannot be negative")

    return ConfigValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )
