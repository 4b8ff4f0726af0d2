"""
Notification Router module for the focus blocker engine.

Provides a webhook notification channel and a router that delivers lock
transition notifications (strict mode enabled or disabled, nuclear lock
activated or expired) with retry logic. Delivery failures are logged and
never raised into the engine.
"""

import asyncio
from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

import httpx

from .config import RetryConfig, WebhookConfig
from .enums import LockKind, LogLevel
from .i18n import get_message

if TYPE_CHECKING:
    from .audit_logger import AuditLogger


# Lock transition events
STRICT_MODE_ENABLED = "strict_mode_enabled"
STRICT_MODE_DISABLEABLE = "strict_mode_disableable"
STRICT_MODE_DISABLED = "strict_mode_disabled"
NUCLEAR_ACTIVATED = "nuclear_activated"
NUCLEAR_EXPIRED = "nuclear_expired"

TRANSITION_EVENTS = (
    STRICT_MODE_ENABLED,
    STRICT_MODE_DISABLEABLE,
    STRICT_MODE_DISABLED,
    NUCLEAR_ACTIVATED,
    NUCLEAR_EXPIRED,
)


def format_timestamp(iso_timestamp: str, language: str = "de") -> str:
    """
    Format an ISO timestamp to a human-readable format.

    Args:
        iso_timestamp: ISO 8601 timestamp string
        language: 'de' for German, 'en' for English

    Returns:
        Formatted timestamp string
    """
    try:
        dt = datetime.fromisoformat(iso_timestamp.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return iso_timestamp

    if language == "de":
        # 10.12.2025, 05:29 Uhr
        return dt.strftime("%d.%m.%Y, %H:%M Uhr")
    # Dec 10, 2025, 05:29 AM
    return dt.strftime("%b %d, %Y, %I:%M %p")


@dataclass
class NotificationPayload:
    """Payload describing one lock transition."""

    event: str
    lock: LockKind
    timestamp: str
    details: dict = field(default_factory=dict)
    language: str = "de"  # 'de' or 'en'

    def get_formatted_timestamp(self) -> str:
        return format_timestamp(self.timestamp, self.language)

    def get_message(self) -> str:
        """Human-readable message in the payload language."""
        return get_message(f"notify.{self.event}", self.language, **self.details)


@dataclass
class NotificationResult:
    """Result of a notification delivery attempt."""

    channel: str
    success: bool
    error: Optional[str] = None
    attempts: int = 1


@runtime_checkable
class NotificationChannel(Protocol):
    """Protocol defining the interface for notification channels."""

    @abstractmethod
    async def send(self, payload: NotificationPayload) -> bool:
        """
        Send a notification.

        Returns:
            True if delivery was successful, False otherwise
        """
        ...

    @abstractmethod
    def get_name(self) -> str:
        ...


class WebhookChannel:
    """Generic webhook notification channel using HTTP POST."""

    def __init__(self, config: WebhookConfig, timeout: float = 30.0) -> None:
        self._url = config.url
        self._headers = config.headers.copy()
        self._timeout = timeout

    def build_body(self, payload: NotificationPayload) -> dict:
        return {
            "event": payload.event,
            "lock": payload.lock.value,
            "message": payload.get_message(),
            "details": payload.details,
            "timestamp": payload.timestamp,
            "timestamp_formatted": payload.get_formatted_timestamp(),
            "language": payload.language,
        }

    async def send(self, payload: NotificationPayload) -> bool:
        """Send notification via HTTP POST webhook."""
        headers = {"Content-Type": "application/json"}
        headers.update(self._headers)

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    self._url,
                    json=self.build_body(payload),
                    headers=headers,
                    timeout=self._timeout,
                )
            except httpx.HTTPError:
                return False
            return 200 <= response.status_code < 300

    def get_name(self) -> str:
        return "webhook"


@dataclass
class RetryAttempt:
    """Record of a single retry attempt."""

    attempt_number: int
    error: str
    timestamp: str


class NotificationRouter:
    """
    Routes lock transition notifications to registered channels.

    Each channel is retried with exponential backoff; when every attempt
    fails the failure is logged with all attempt details.
    """

    def __init__(
        self,
        retry_config: Optional[RetryConfig] = None,
        logger: Optional["AuditLogger"] = None,
    ) -> None:
        self._channels: list[NotificationChannel] = []
        self._retry_config = retry_config or RetryConfig()
        self._logger = logger

    def register_channel(self, channel: NotificationChannel) -> None:
        self._channels.append(channel)

    def unregister_channel(self, channel_name: str) -> bool:
        """Unregister a channel by name. Returns False if it wasn't registered."""
        for i, channel in enumerate(self._channels):
            if channel.get_name() == channel_name:
                self._channels.pop(i)
                return True
        return False

    @property
    def channels(self) -> list[NotificationChannel]:
        return self._channels.copy()

    async def notify(self, payload: NotificationPayload) -> list[NotificationResult]:
        """
        Send a notification to all registered channels.

        Returns:
            One NotificationResult per channel
        """
        results = []
        for channel in self._channels:
            results.append(await self._send_with_retry(channel, payload))
        return results

    async def _send_with_retry(
        self,
        channel: NotificationChannel,
        payload: NotificationPayload,
    ) -> NotificationResult:
        channel_name = channel.get_name()
        max_attempts = self._retry_config.max_retries + 1
        attempts = 0
        retry_attempts: list[RetryAttempt] = []
        last_error: Optional[str] = None

        while attempts < max_attempts:
            attempts += 1
            try:
                if await channel.send(payload):
                    return NotificationResult(
                        channel=channel_name,
                        success=True,
                        attempts=attempts,
                    )
                last_error = "Channel returned failure"
            except Exception as e:
                last_error = str(e)

            retry_attempts.append(
                RetryAttempt(
                    attempt_number=attempts,
                    error=last_error,
                    timestamp=datetime.now(timezone.utc).isoformat(),
                )
            )

            # No delay after the last attempt
            if attempts < max_attempts:
                await asyncio.sleep(self._calculate_delay(attempts - 1))

        self._log_all_retries_failed(channel_name, payload, retry_attempts)
        return NotificationResult(
            channel=channel_name,
            success=False,
            error=last_error,
            attempts=attempts,
        )

    def _calculate_delay(self, attempt: int) -> float:
        """Exponential backoff for a 0-indexed attempt, capped at max_delay_seconds."""
        delay = self._retry_config.base_delay_seconds * (2 ** attempt)
        return min(delay, self._retry_config.max_delay_seconds)

    def _log_all_retries_failed(
        self,
        channel_name: str,
        payload: NotificationPayload,
        retry_attempts: list[RetryAttempt],
    ) -> None:
        if self._logger is None:
            return

        self._logger.log(
            level=LogLevel.ERROR,
            component="NotificationRouter",
            message=f"All notification retries failed for channel '{channel_name}'",
            data={
                "channel": channel_name,
                "event": payload.event,
                "lock": payload.lock.value,
                "timestamp": payload.timestamp,
                "total_attempts": len(retry_attempts),
                "attempts": [
                    {
                        "attempt": attempt.attempt_number,
                        "error": attempt.error,
                        "timestamp": attempt.timestamp,
                    }
                    for attempt in retry_attempts
                ],
            },
        )
