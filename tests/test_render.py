"""Tests for artifact rendering and decision reminder scheduling."""

import json
import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from mailtriage.agent.render import ArtifactRenderer, reminder_description
from mailtriage.agent.schemas import (
    ActionKind,
    Amount,
    Classification,
    Confidence,
    ExtractedEntities,
    Message,
)
from mailtriage.logging.config import setup_logging

NOW = datetime(2026, 2, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def renderer() -> ArtifactRenderer:
    return ArtifactRenderer(default_lead_days=30, clock=lambda: NOW)


def make_message(**overrides) -> Message:
    defaults = {
        "id": "msg-1",
        "sender": "noreply@acme-insurance.com",
        "subject": "Your policy renewal due 15 March 2026",
        "snippet": "Your home insurance policy renews soon.",
        "received": datetime(2026, 1, 31, 18, 30, tzinfo=timezone.utc),
        "link": "https://outlook.office.com/mail/msg-1",
    }
    defaults.update(overrides)
    return Message(**defaults)


def make_classification(
    category: str = "insurance/renewal",
    action: ActionKind = ActionKind.DEADLINE_TRACKED,
    lead_time_days=None,
) -> Classification:
    return Classification(
        category=category,
        action=action,
        confidence=Confidence.HIGH,
        lead_time_days=lead_time_days,
    )


def subscription() -> Classification:
    return make_classification("subscription/renewal", ActionKind.DECISION_REMINDER, 30)


# =============================================================================
# DEADLINE-TRACKED
# =============================================================================

class TestDeadline:
    def test_title_and_labels(self, renderer):
        artifact = renderer.render(
            make_message(), make_classification(), ExtractedEntities(deadline=date(2026, 3, 15))
        )
        assert artifact.title == "[ACTION] Your policy renewal due 15 March 2026"
        assert artifact.labels == ("email", "action-required", "deadline-tracked")
        assert artifact.reminder is None

    def test_body_fields(self, renderer):
        artifact = renderer.render(
            make_message(), make_classification(), ExtractedEntities(deadline=date(2026, 3, 15))
        )
        assert "- **From:** noreply@acme-insurance.com" in artifact.body
        assert "- **Received:** 2026-01-31" in artifact.body
        assert "- **Link:** https://outlook.office.com/mail/msg-1" in artifact.body
        assert "- **Due:** 2026-03-15" in artifact.body
        assert "- **Days remaining:** 42" in artifact.body
        assert "Your home insurance policy renews soon." in artifact.body
        assert artifact.body.endswith("*Auto-created by mailtriage*")

    def test_amount_block(self, renderer):
        entities = ExtractedEntities(
            deadline=date(2026, 3, 15),
            amount=Amount(value=Decimal("412.50"), currency="£"),
        )
        artifact = renderer.render(make_message(), make_classification(), entities)
        assert "**Amount:** £412.50" in artifact.body

    def test_missing_values(self, renderer):
        artifact = renderer.render(
            make_message(link="", snippet=""), make_classification(), ExtractedEntities()
        )
        assert "- **Link:** N/A" in artifact.body
        assert "- **Due:** unknown" in artifact.body
        assert "- **Days remaining:** n/a" in artifact.body
        assert "No preview available" in artifact.body
        assert "**Amount:**" not in artifact.body


# =============================================================================
# APPOINTMENT
# =============================================================================

class TestAppointment:
    def test_appointment(self, renderer):
        artifact = renderer.render(
            make_message(subject="Appointment confirmed", sender="bookings@clinic.nhs.uk"),
            make_classification("scheduling/appointment", ActionKind.APPOINTMENT),
            ExtractedEntities(deadline=date(2026, 2, 10)),
        )
        assert artifact.title == "[APPOINTMENT] Appointment confirmed"
        assert artifact.labels == ("email", "appointment")
        assert "- **Date:** 2026-02-10" in artifact.body
        assert "*Consider adding to calendar*" in artifact.body

    def test_appointment_without_date(self, renderer):
        artifact = renderer.render(
            make_message(link=""),
            make_classification("scheduling/appointment", ActionKind.APPOINTMENT),
            ExtractedEntities(),
        )
        assert "- **Date:** see message" in artifact.body
        assert "[Original message](#)" in artifact.body


# =============================================================================
# DECISION REMINDER
# =============================================================================

class TestDecision:
    def test_reminder_is_lead_time_before_renewal(self, renderer):
        artifact = renderer.render(
            make_message(subject="Your annual subscription renews on 2026-06-01"),
            subscription(),
            ExtractedEntities(deadline=date(2026, 6, 1)),
        )
        reminder = artifact.reminder
        assert reminder.event_date == date(2026, 6, 1)
        assert reminder.reminder_date == date(2026, 5, 2)
        assert reminder.lead_time_days == 30
        assert reminder.label == "Decide: Your annual subscription renews on 2026-06-01"

    def test_title_labels_and_checklist(self, renderer):
        artifact = renderer.render(
            make_message(subject="Membership renewal"),
            subscription(),
            ExtractedEntities(deadline=date(2026, 6, 1)),
        )
        assert artifact.title == "[SUBSCRIPTION] Membership renewal"
        assert artifact.labels == ("email", "subscription", "decision-needed")
        assert artifact.body.count("- [ ] ") == 5
        assert "- **Decide by:** 2026-05-02" in artifact.body
        assert "calendar reminder not scheduled" not in artifact.body

    def test_default_lead_time_when_rule_has_none(self):
        renderer = ArtifactRenderer(default_lead_days=14, clock=lambda: NOW)
        artifact = renderer.render(
            make_message(),
            make_classification("gym/membership", ActionKind.DECISION_REMINDER),
            ExtractedEntities(deadline=date(2026, 6, 1)),
        )
        assert artifact.reminder.reminder_date == date(2026, 5, 18)
        assert artifact.title.startswith("[GYM] ")

    def test_amount_line(self, renderer):
        entities = ExtractedEntities(
            deadline=date(2026, 6, 1), amount=Amount(value=Decimal("119.99"), currency="GBP")
        )
        artifact = renderer.render(make_message(), subscription(), entities)
        assert "- **Amount:** 119.99 GBP" in artifact.body

    def test_no_deadline_skips_reminder_and_logs(self, renderer, capsys):
        setup_logging("debug")
        artifact = renderer.render(make_message(), subscription(), ExtractedEntities())

        assert artifact.reminder is None
        assert "- **Renewal date:** unknown" in artifact.body
        assert "calendar reminder not scheduled" in artifact.body

        logs = [json.loads(line) for line in capsys.readouterr().out.strip().splitlines()]
        skipped = [log for log in logs if log.get("action") == "artifact.calendar_skipped"]
        assert len(skipped) == 1
        assert skipped[0]["reason"] == "no_deadline"

    def test_reminder_description(self, renderer):
        message = make_message()
        artifact = renderer.render(message, subscription(), ExtractedEntities(deadline=date(2026, 6, 1)))
        description = reminder_description(message, artifact.reminder)
        assert "Renewal date: 2026-06-01" in description
        assert "Link: https://outlook.office.com/mail/msg-1" in description


# =============================================================================
# DEFAULT AND DETERMINISM
# =============================================================================

class TestDefault:
    @pytest.mark.parametrize("action", [
        ActionKind.DEFAULT,
        ActionKind.URGENT_ALERT,
        ActionKind.CALENDAR_EVENT,
    ])
    def test_default_template(self, renderer, action):
        artifact = renderer.render(
            make_message(subject="Check this"),
            make_classification("general/action-required", action),
            ExtractedEntities(),
        )
        assert artifact.title == "[ACTION] Check this"
        assert artifact.labels == ("email", "action-required")
        assert "## Action Required" in artifact.body


class TestDeterminism:
    def test_same_inputs_same_bytes(self, renderer):
        args = (
            make_message(),
            make_classification(),
            ExtractedEntities(deadline=date(2026, 3, 15)),
        )
        assert renderer.render(*args) == renderer.render(*args)
        assert renderer.render(*args, now=NOW).body == renderer.render(*args, now=NOW).body

    def test_now_changes_days_remaining(self, renderer):
        later = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
        artifact = renderer.render(
            make_message(),
            make_classification(),
            ExtractedEntities(deadline=date(2026, 3, 15)),
            now=later,
        )
        assert "- **Days remaining:** 14" in artifact.body
