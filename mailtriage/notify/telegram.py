"""
Alert channels: the AlertChannel collaborator.

- TelegramAlertChannel posts the rendered alert to a chat through the Bot
  API. Fire-and-forget from the pipeline's point of view: a failure raises
  AlertError, which the pipeline records as a failed step.
- LogAlertChannel writes the alert as a structured log record. Used when
  no Telegram bot is configured, so alerts are still visible in the run log.

Usage:
    from mailtriage.notify.telegram import TelegramAlertChannel

    alerts = TelegramAlertChannel(bot_token="123:abc", chat_id="42")
    alerts.send(text, urgency=7, category="banking/fraud-alert")
"""

import logging

import httpx

from mailtriage.agent.engine import CollaboratorError
from mailtriage.logging.audit import audit

logger = logging.getLogger(__name__)

DEFAULT_TELEGRAM_API_URL = "https://api.telegram.org"


class AlertError(CollaboratorError):
    """The alert could not be delivered."""


class TelegramAlertChannel:
    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        api_url: str = DEFAULT_TELEGRAM_API_URL,
        timeout_seconds: float = 30.0,
    ):
        self._url = f"{api_url.rstrip('/')}/bot{bot_token}/sendMessage"
        self._chat_id = chat_id
        self._http = httpx.Client(timeout=timeout_seconds)

    def close(self):
        """Close the HTTP client. Call when done."""
        self._http.close()

    def send(self, text: str, urgency: int, category: str) -> None:
        try:
            resp = self._http.post(
                self._url,
                json={
                    "chat_id": self._chat_id,
                    "text": text,
                    "parse_mode": "Markdown",
                    "disable_web_page_preview": True,
                },
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            # The bot token is part of the URL; never log str(e) for status errors.
            status_code = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            logger.error(
                "telegram.send.failed",
                extra={
                    "action": "telegram.send.failed",
                    "category": category,
                    "urgency": urgency,
                    "status_code": status_code,
                    "error_type": type(e).__name__,
                },
            )
            raise AlertError(f"Telegram sendMessage failed ({type(e).__name__}, status {status_code})") from e

        audit.info("alert.sent", channel="telegram", category=category, urgency=urgency)


class LogAlertChannel:
    """Alert sink that only logs. No network, never fails."""

    def __init__(self):
        self._logger = logging.getLogger("mailtriage.alerts")

    def send(self, text: str, urgency: int, category: str) -> None:
        self._logger.warning(
            text,
            extra={
                "action": "alert.logged",
                "category": category,
                "urgency": urgency,
            },
        )
