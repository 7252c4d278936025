"""
Artifact rendering: issue title, body and labels, plus the reminder
schedule for decision-type categories.

Rendering is a pure function of (message, classification, entities, now).
The same inputs always produce byte-identical output.

Usage:
    from mailtriage.agent.render import ArtifactRenderer

    renderer = ArtifactRenderer(default_lead_days=30)
    artifact = renderer.render(message, classification, entities, now=now)
    artifact.reminder  # → ReminderSchedule or None
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from mailtriage.agent import templates
from mailtriage.agent.dates import Clock, days_until, utc_now
from mailtriage.agent.rules import DEFAULT_DECISION_LEAD_DAYS
from mailtriage.agent.schemas import (
    ActionKind,
    Artifact,
    Classification,
    ExtractedEntities,
    Message,
    ReminderSchedule,
)

logger = logging.getLogger(__name__)


class ArtifactRenderer:
    """Renders the follow-up artifact for a classified message."""

    def __init__(
        self,
        default_lead_days: int = DEFAULT_DECISION_LEAD_DAYS,
        clock: Clock = utc_now,
    ):
        self._default_lead_days = default_lead_days
        self._clock = clock

    def render(
        self,
        message: Message,
        classification: Classification,
        entities: ExtractedEntities,
        now: Optional[datetime] = None,
    ) -> Artifact:
        now = now or self._clock()
        action = classification.action

        if action == ActionKind.DEADLINE_TRACKED:
            return self._render_deadline(message, entities, now)
        if action == ActionKind.APPOINTMENT:
            return self._render_appointment(message, entities)
        if action == ActionKind.DECISION_REMINDER:
            return self._render_decision(message, classification, entities)
        return self._render_default(message)

    # =========================================================================
    # PER-ACTION TEMPLATES
    # =========================================================================

    def _render_deadline(
        self, message: Message, entities: ExtractedEntities, now: datetime
    ) -> Artifact:
        deadline = entities.deadline
        amount_block = (
            f"\n**Amount:** {entities.amount.display}\n" if entities.amount else ""
        )
        body = templates.DEADLINE_BODY.format(
            sender=message.sender,
            received=_received_date(message),
            link=message.link or "N/A",
            due=deadline.isoformat() if deadline else "unknown",
            days_remaining=days_until(deadline, now) if deadline else "n/a",
            snippet=message.snippet or templates.NO_PREVIEW,
            amount_block=amount_block,
            footer=templates.FOOTER,
        )
        return Artifact(
            title=f"[ACTION] {message.subject}",
            body=body,
            labels=("email", "action-required", "deadline-tracked"),
        )

    def _render_appointment(self, message: Message, entities: ExtractedEntities) -> Artifact:
        body = templates.APPOINTMENT_BODY.format(
            date=entities.deadline.isoformat() if entities.deadline else "see message",
            sender=message.sender,
            snippet=message.snippet or templates.NO_PREVIEW,
            link=message.link or "#",
        )
        return Artifact(
            title=f"[APPOINTMENT] {message.subject}",
            body=body,
            labels=("email", "appointment"),
        )

    def _render_decision(
        self,
        message: Message,
        classification: Classification,
        entities: ExtractedEntities,
    ) -> Artifact:
        lead_time_days = classification.lead_time_days
        if lead_time_days is None:
            lead_time_days = self._default_lead_days
        deadline = entities.deadline

        reminder: Optional[ReminderSchedule] = None
        if deadline is not None:
            reminder = ReminderSchedule(
                event_date=deadline,
                reminder_date=deadline - timedelta(days=lead_time_days),
                lead_time_days=lead_time_days,
                label=f"Decide: {message.subject}",
            )
        else:
            logger.info(
                "artifact.calendar_skipped",
                extra={
                    "action": "artifact.calendar_skipped",
                    "email_id": message.id,
                    "category": classification.category,
                    "reason": "no_deadline",
                },
            )

        amount_line = (
            f"- **Amount:** {entities.amount.display}\n" if entities.amount else ""
        )
        body = templates.DECISION_BODY.format(
            renewal_date=deadline.isoformat() if deadline else "unknown",
            decide_by=reminder.reminder_date.isoformat() if reminder else "n/a",
            lead_time_days=lead_time_days,
            sender=message.sender,
            received=_received_date(message),
            amount_line=amount_line,
            reminder_note="" if reminder else templates.REMINDER_SKIPPED_NOTE,
            checklist=templates.format_checklist(),
            snippet=message.snippet or templates.NO_PREVIEW,
            link=message.link or "#",
            footer=templates.FOOTER,
        )
        domain = classification.domain
        return Artifact(
            title=f"[{domain.upper()}] {message.subject}",
            body=body,
            labels=("email", domain, "decision-needed"),
            reminder=reminder,
        )

    def _render_default(self, message: Message) -> Artifact:
        body = templates.DEFAULT_BODY.format(
            sender=message.sender,
            received=_received_date(message),
            snippet=message.snippet or templates.NO_PREVIEW,
            link=message.link or "#",
            footer=templates.FOOTER,
        )
        return Artifact(
            title=f"[ACTION] {message.subject}",
            body=body,
            labels=("email", "action-required"),
        )


def reminder_description(message: Message, reminder: ReminderSchedule) -> str:
    """Calendar event description for a decision reminder."""
    return templates.REMINDER_DESCRIPTION.format(
        subject=message.subject,
        renewal_date=reminder.event_date.isoformat(),
        sender=message.sender,
        link=message.link or "N/A",
    )


def _received_date(message: Message) -> str:
    return message.received.date().isoformat()
