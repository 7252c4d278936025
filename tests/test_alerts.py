"""Tests for alert text rendering."""

from datetime import datetime, timezone

from mailtriage.agent.alerts import escape_markdown, format_alert, preview, select_banner
from mailtriage.agent.schemas import ActionKind, Classification, Confidence, Message


def make_message(**overrides) -> Message:
    defaults = {
        "id": "msg-1",
        "sender": "alerts@mybank.com",
        "subject": "Suspicious activity on your account",
        "snippet": "We noticed a login from a new device.",
        "received": datetime(2026, 2, 1, 8, 0, tzinfo=timezone.utc),
    }
    defaults.update(overrides)
    return Message(**defaults)


def make_classification(
    category: str = "banking/fraud-alert", action: ActionKind = ActionKind.URGENT_ALERT
) -> Classification:
    return Classification(category=category, action=action, confidence=Confidence.MEDIUM)


class TestBanner:
    def test_urgent(self):
        assert select_banner(make_classification(), 8) == "🚨"

    def test_attention(self):
        assert select_banner(make_classification(), 6) == "⚠️"
        assert select_banner(make_classification(), 7) == "⚠️"

    def test_urgency_outranks_action(self):
        decision = make_classification("subscription/renewal", ActionKind.DECISION_REMINDER)
        assert select_banner(decision, 9) == "🚨"

    def test_decision(self):
        decision = make_classification("subscription/renewal", ActionKind.DECISION_REMINDER)
        assert select_banner(decision, 2) == "🔔"

    def test_appointment(self):
        appointment = make_classification("scheduling/appointment", ActionKind.APPOINTMENT)
        assert select_banner(appointment, 5) == "📅"

    def test_generic(self):
        assert select_banner(make_classification(), 5) == "📋"


class TestPreview:
    def test_short_snippet_unchanged(self):
        assert preview("hello") == "hello"

    def test_empty(self):
        assert preview("") == "No preview"

    def test_truncated_with_ellipsis(self):
        assert preview("x" * 250) == "x" * 200 + "..."

    def test_exactly_at_limit(self):
        assert preview("x" * 200) == "x" * 200

    def test_custom_limit(self):
        assert preview("abcdef", limit=3) == "abc..."


class TestFormatAlert:
    def test_fraud_alert_text(self):
        text = format_alert(make_message(), make_classification(), 10)
        assert text == (
            "🚨 *FRAUD-ALERT REQUIRED*\n"
            "\n"
            "*From:* alerts@mybank.com\n"
            "*Subject:* Suspicious activity on your account\n"
            "*Urgency:* 10/10\n"
            "\n"
            "We noticed a login from a new device."
        )

    def test_heading_uses_subtype(self):
        decision = make_classification("subscription/renewal", ActionKind.DECISION_REMINDER)
        text = format_alert(make_message(), decision, 2)
        assert text.startswith("🔔 *RENEWAL REQUIRED*")

    def test_preview_chars_respected(self):
        text = format_alert(make_message(snippet="y" * 50), make_classification(), 4, preview_chars=10)
        assert text.endswith("y" * 10 + "...")

    def test_markdown_in_sender_and_subject_escaped(self):
        message = make_message(
            sender="john_smith@streaming_co.com",
            subject="Renewal_notice for *Premium* [annual]",
        )
        text = format_alert(message, make_classification(), 4)
        assert "*From:* john\\_smith@streaming\\_co.com\n" in text
        assert "*Subject:* Renewal\\_notice for \\*Premium\\* \\[annual]\n" in text

    def test_every_underscore_in_content_is_escaped(self):
        message = make_message(sender="a_b@c_d.com", subject="x_y", snippet="snake_case_value `code`")
        text = format_alert(message, make_classification(), 4)
        body = text.split("\n", 1)[1]
        assert "_" not in body.replace("\\_", "")
        assert text.endswith("snake\\_case\\_value \\`code\\`")

    def test_preview_escaped_after_truncation(self):
        text = format_alert(make_message(snippet="_" * 50), make_classification(), 4, preview_chars=10)
        assert text.endswith("\\_" * 10 + "...")


class TestEscapeMarkdown:
    def test_plain_text_unchanged(self):
        assert escape_markdown("Suspicious activity on your account") == "Suspicious activity on your account"

    def test_special_characters(self):
        assert escape_markdown("a_b*c`d[e") == "a\\_b\\*c\\`d\\[e"
