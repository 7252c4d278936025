"""
Microsoft Graph API clients for the mailbox and the calendar.

- GraphMailClient: the MailSource collaborator. Searches the triage
  mailbox for unread mail from authorized senders that has not been
  triaged yet, and marks messages processed (triaged category + read).
- GraphCalendarClient: the CalendarService collaborator. Creates an
  all-day event with a reminder for decision-type messages.

Both use an app-only token (see mailtriage.graph.auth) and address the
mailbox as /users/{account}. Every call is bounded by the httpx timeout.

Usage:
    from mailtriage.graph.client import GraphMailClient

    mail = GraphMailClient(access_token="eyJ...", account="triage@org.com")
    messages = mail.search(query, max_results=20)
    mail.mark_processed(messages[0].id)
"""

import logging
import time
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import httpx

from mailtriage.agent.engine import CollaboratorError
from mailtriage.agent.schemas import Message, SearchQuery
from mailtriage.logging.audit import audit

logger = logging.getLogger(__name__)

DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

# Fields we request for triage candidates.
# Requesting only what we need reduces response size and latency.
MESSAGE_SELECT_FIELDS = "id,subject,from,sender,bodyPreview,receivedDateTime,webLink,categories,isRead"


class GraphError(CollaboratorError):
    """A Microsoft Graph call failed."""


def _quote(value: str) -> str:
    """OData string literal: single quotes doubled."""
    return "'" + value.replace("'", "''") + "'"


def build_filter(query: SearchQuery) -> str:
    """Translate a SearchQuery into a Graph ``$filter`` expression."""
    parts = []
    if query.unread_only:
        parts.append("isRead eq false")
    if query.senders:
        senders = " or ".join(
            f"from/emailAddress/address eq {_quote(s)}" for s in query.senders
        )
        parts.append(f"({senders})")
    if query.exclude_label:
        parts.append(f"not categories/any(c:c eq {_quote(query.exclude_label)})")
    return " and ".join(parts)


class GraphClient:
    """
    Shared HTTP plumbing for the Graph collaborators.

    Expects a valid access token. Token acquisition is handled by the auth
    module, not by this client. This keeps the client simple and testable.
    """

    def __init__(
        self,
        access_token: str,
        account: str,
        base_url: str = DEFAULT_GRAPH_BASE_URL,
        timeout_seconds: float = 30.0,
    ):
        self._token = access_token
        self._base = base_url.rstrip("/")
        self._account = account
        self._http = httpx.Client(
            timeout=timeout_seconds,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Content-Type": "application/json",
            },
        )

    @property
    def _user_url(self) -> str:
        return f"{self._base}/users/{self._account}"

    def close(self):
        """Close the HTTP client. Call when done."""
        self._http.close()


class GraphMailClient(GraphClient):
    """Mailbox search and triage marking."""

    def __init__(self, *args, triaged_label: str = "triaged", **kwargs):
        super().__init__(*args, **kwargs)
        self._triaged_label = triaged_label

    # =========================================================================
    # SEARCH — With pagination, bounded by max_results
    # =========================================================================

    def search(self, query: SearchQuery, max_results: int) -> list[Message]:
        """
        Fetch triage candidates matching ``query``.

        Paginates until max_results is reached or there are no more pages.

        Raises:
            GraphError: any page failed. Nothing has been processed yet at
                this point, so the caller treats it as fatal.
        """
        start = time.monotonic()
        params = {
            "$top": min(50, max_results),
            "$select": MESSAGE_SELECT_FIELDS,
            "$filter": build_filter(query),
        }

        messages: list[Message] = []
        url: Optional[str] = f"{self._user_url}/messages"
        page_count = 0

        while url and len(messages) < max_results:
            try:
                if page_count == 0:
                    resp = self._http.get(url, params=params)
                else:
                    # Subsequent pages use @odata.nextLink which includes params
                    resp = self._http.get(url)
                resp.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(
                    "graph.search.error",
                    extra={
                        "action": "graph.search.error",
                        "page": page_count,
                        "status_code": e.response.status_code,
                        "response_body": e.response.text[:500],
                    },
                )
                raise GraphError(f"Mailbox search failed: HTTP {e.response.status_code}") from e
            except httpx.HTTPError as e:
                logger.error(
                    "graph.search.error",
                    extra={"action": "graph.search.error", "page": page_count, "error": str(e)},
                )
                raise GraphError(f"Mailbox search failed: {e}") from e

            data = resp.json()
            page_count += 1
            for msg in data.get("value", []):
                if len(messages) >= max_results:
                    break
                message = self._parse_message(msg)
                if message:
                    messages.append(message)

            url = data.get("@odata.nextLink")

        latency_ms = int((time.monotonic() - start) * 1000)
        audit.info(
            "graph.search.fetched",
            messages_fetched=len(messages),
            pages=page_count,
            latency_ms=latency_ms,
        )
        return messages

    # =========================================================================
    # MARK PROCESSED — Add the triaged category and mark read
    # =========================================================================

    def mark_processed(self, message_id: str) -> bool:
        """
        Tag a message with the triaged category and mark it read.

        Idempotent: the category is only added if missing. Returns False
        (and logs) on any Graph error.
        """
        url = f"{self._user_url}/messages/{message_id}"
        try:
            resp = self._http.get(url, params={"$select": "categories"})
            resp.raise_for_status()
            categories = list(resp.json().get("categories") or [])
            if self._triaged_label not in categories:
                categories.append(self._triaged_label)

            resp = self._http.patch(url, json={"isRead": True, "categories": categories})
            resp.raise_for_status()
            audit.info("graph.message.marked_processed", email_id=message_id)
            return True
        except httpx.HTTPError as e:
            logger.error(
                "graph.mark_processed.failed",
                extra={
                    "action": "graph.mark_processed.failed",
                    "email_id": message_id,
                    "error": str(e),
                },
            )
            return False

    # =========================================================================
    # PRIVATE HELPERS
    # =========================================================================

    @staticmethod
    def _parse_message(msg: dict) -> Optional[Message]:
        """
        Parse a raw Graph message dict into a Message.

        Defensive parsing: malformed fields fall back to defaults so one bad
        message cannot break the whole search. Returns None only when the
        message has no ID.
        """
        try:
            if not msg.get("id"):
                return None

            from_obj = msg.get("from") or msg.get("sender") or {}
            address_obj = from_obj.get("emailAddress") if isinstance(from_obj, dict) else None
            if not isinstance(address_obj, dict):
                address_obj = {}
            name = str(address_obj.get("name") or "")
            address = str(address_obj.get("address") or "")
            if name and address and name.lower() != address.lower():
                sender = f"{name} <{address}>"
            else:
                sender = address or name

            categories = msg.get("categories") or []
            return Message(
                id=str(msg["id"]),
                sender=sender,
                subject=str(msg.get("subject") or "No Subject"),
                snippet=str(msg.get("bodyPreview") or ""),
                received=_parse_graph_datetime(msg.get("receivedDateTime")),
                link=str(msg.get("webLink") or ""),
                labels=frozenset(str(c) for c in categories if c),
            )
        except Exception as e:
            logger.error(
                "graph.parse_message.failed",
                extra={
                    "action": "graph.parse_message.failed",
                    "error": str(e),
                    "msg_id": msg.get("id", "unknown"),
                },
            )
            return None


class GraphCalendarClient(GraphClient):
    """Creates all-day reminder events in the triage mailbox calendar."""

    def __init__(self, *args, reminder_minutes: int = 0, **kwargs):
        super().__init__(*args, **kwargs)
        self._reminder_minutes = reminder_minutes

    def schedule_reminder(self, date: date, title: str, description: str) -> Optional[str]:
        """
        Create an all-day event on ``date`` with a reminder.

        Returns the event web link (or ID), or None if Graph rejected it.
        """
        event = {
            "subject": title,
            "body": {"contentType": "text", "content": description},
            "start": {"dateTime": f"{date.isoformat()}T00:00:00", "timeZone": "UTC"},
            "end": {
                "dateTime": f"{(date + timedelta(days=1)).isoformat()}T00:00:00",
                "timeZone": "UTC",
            },
            "isAllDay": True,
            "isReminderOn": True,
            "reminderMinutesBeforeStart": self._reminder_minutes,
            "showAs": "free",
        }

        try:
            resp = self._http.post(f"{self._user_url}/events", json=event)
            resp.raise_for_status()
            data = resp.json()
            audit.info("graph.reminder.created", reminder_date=date.isoformat())
            return data.get("webLink") or data.get("id")
        except httpx.HTTPError as e:
            logger.error(
                "graph.reminder.failed",
                extra={
                    "action": "graph.reminder.failed",
                    "reminder_date": date.isoformat(),
                    "error": str(e),
                },
            )
            return None


def _parse_graph_datetime(value: Optional[str]) -> datetime:
    """Graph timestamps look like 2026-02-18T10:00:00Z. Missing → now (UTC)."""
    if not value:
        return datetime.now(timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
