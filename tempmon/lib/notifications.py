"""Notification dispatch for temperature alerts.

Provides an abstract notification interface with pluggable backends.
Supports Gmail and Slack notifications, or both simultaneously. Delivery
retries are handled here; the monitor only hands over a request.
"""

import asyncio
import json
import ssl
import urllib.request
from abc import ABC, abstractmethod
from email.message import EmailMessage
from smtplib import SMTP
from typing import Any, override

from tempmon.lib.alerts import NotificationRequest
from tempmon.lib.config import AlertKind, NotificationBackend, get_settings
from tempmon.lib.reading import format_recording_time
from tempmon.lib.retry import with_retry
from tempmon.logging import get_logger

logger = get_logger("lib.notifications")

_TITLES: dict[AlertKind, str] = {
    AlertKind.INITIAL: "Temperature Alert",
    AlertKind.REPEAT: "Temperature Alert",
    AlertKind.RESTORE: "Temperature Restored",
}


def get_title(request: NotificationRequest) -> str:
    """Get a short title for a notification."""
    return _TITLES[request.kind]


class AbstractNotifier(ABC):
    """Abstract base class for notification backends."""

    @abstractmethod
    async def send(self, request: NotificationRequest) -> None:
        """Send a notification for the given request."""


class GmailNotifier(AbstractNotifier):
    """Gmail notification backend."""

    def _build_email(self, subject: str, body: str) -> EmailMessage:
        """Build an email message with the given subject and body."""
        gmail = get_settings().notifications.gmail
        msg = EmailMessage()
        msg.add_header("From", gmail.sender)
        msg.add_header("To", gmail.recipients)
        msg.add_header("Subject", subject)
        msg.set_content(body)
        return msg

    async def _send_email(self, message: EmailMessage, sensor_id: str) -> None:
        """Send an email with retry logic and exponential backoff."""
        cfg = get_settings().notifications
        gmail = cfg.gmail
        timeout = cfg.timeout_sec

        def do_send() -> None:
            context = ssl.create_default_context()
            with SMTP("smtp.gmail.com", 587, timeout=timeout) as server:
                server.starttls(context=context)
                server.login(gmail.username, gmail.password.get_secret_value())
                server.send_message(message)
            logger.info("Sent email notification for %s", sensor_id)

        await with_retry(
            do_send,
            name="Email",
            logger=logger,
            max_retries=cfg.max_retries,
            initial_backoff_sec=cfg.initial_backoff_sec,
            run_in_thread=True,
        )

    @override
    async def send(self, request: NotificationRequest) -> None:
        """Send email notification."""
        base_subject = get_settings().notifications.gmail.subject
        subject = f"{base_subject} - {get_title(request)}"
        body = (
            f"{request.message}\n\n"
            f"Time: {format_recording_time(request.recording_time)} UTC"
        )
        await self._send_email(
            self._build_email(subject, body), request.sensor_id
        )


class SlackNotifier(AbstractNotifier):
    """Slack webhook notification backend."""

    def _build_payload(
        self, title: str, message: str, time_str: str
    ) -> dict[str, Any]:
        """Build a Slack message payload."""
        return {
            "text": message,
            "blocks": [
                {
                    "type": "header",
                    "text": {"type": "plain_text", "text": title},
                },
                {
                    "type": "section",
                    "text": {"type": "mrkdwn", "text": message},
                },
                {
                    "type": "context",
                    "elements": [
                        {"type": "mrkdwn", "text": f":clock1: {time_str}"}
                    ],
                },
            ],
        }

    async def _send_slack(
        self, payload: dict[str, Any], sensor_id: str
    ) -> None:
        """Send a Slack message with retry logic."""
        data = json.dumps(payload).encode("utf-8")
        cfg = get_settings().notifications
        webhook_url = cfg.slack.webhook_url
        timeout = cfg.timeout_sec

        def do_send() -> None:
            req = urllib.request.Request(
                webhook_url,
                data=data,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                if resp.status != 200:
                    raise OSError(f"Slack API returned status {resp.status}")
            logger.info("Sent Slack notification for %s", sensor_id)

        await with_retry(
            do_send,
            name="Slack",
            logger=logger,
            max_retries=cfg.max_retries,
            initial_backoff_sec=cfg.initial_backoff_sec,
            run_in_thread=True,
        )

    @override
    async def send(self, request: NotificationRequest) -> None:
        """Send Slack notification."""
        payload = self._build_payload(
            get_title(request),
            request.message,
            format_recording_time(request.recording_time),
        )
        await self._send_slack(payload, request.sensor_id)


class CompositeNotifier(AbstractNotifier):
    """Sends notifications to multiple backends."""

    def __init__(self, notifiers: list[AbstractNotifier]):
        self._notifiers = notifiers

    @property
    def notifiers(self) -> list[AbstractNotifier]:
        return list(self._notifiers)

    @override
    async def send(self, request: NotificationRequest) -> None:
        """Send notification to all configured backends concurrently.

        A failing backend does not prevent delivery through the others.
        """
        results = await asyncio.gather(
            *(notifier.send(request) for notifier in self._notifiers),
            return_exceptions=True,
        )
        for notifier, result in zip(self._notifiers, results, strict=True):
            if isinstance(result, Exception):
                logger.error(
                    "%s failed for %s: %s",
                    type(notifier).__name__,
                    request.sensor_id,
                    result,
                )


class NoOpNotifier(AbstractNotifier):
    """No-op notifier that logs but doesn't send notifications."""

    @override
    async def send(self, request: NotificationRequest) -> None:
        """Log the request but don't send a notification."""
        logger.info(
            "Notifications disabled, skipping %s for %s: %s",
            request.kind,
            request.sensor_id,
            request.message,
        )


_BACKEND_MAP: dict[NotificationBackend, type[AbstractNotifier]] = {
    NotificationBackend.GMAIL: GmailNotifier,
    NotificationBackend.SLACK: SlackNotifier,
}


def get_notifier() -> AbstractNotifier:
    """Factory function to get the configured notifier."""
    cfg = get_settings().notifications
    if not cfg.enabled:
        return NoOpNotifier()

    notifiers: list[AbstractNotifier] = []
    for backend_str in cfg.backends:
        try:
            backend = NotificationBackend(backend_str)
            notifiers.append(_BACKEND_MAP[backend]())
        except (ValueError, KeyError):
            logger.warning("Unknown notification backend: %s", backend_str)

    if not notifiers:
        return NoOpNotifier()
    if len(notifiers) == 1:
        return notifiers[0]
    return CompositeNotifier(notifiers)
