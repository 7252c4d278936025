"""Tests for first-match rule classification."""

import pytest
from datetime import datetime, timezone

from mailtriage.agent.classifier import Classifier
from mailtriage.agent.rules import Rule, RuleRegistry
from mailtriage.agent.schemas import ActionKind, Confidence, Message


def make_message(**overrides) -> Message:
    defaults = {
        "id": "msg-1",
        "sender": "friend@example.com",
        "subject": "Lunch next week?",
        "snippet": "Are you free on Thursday?",
        "received": datetime(2026, 2, 1, 8, 0, tzinfo=timezone.utc),
    }
    defaults.update(overrides)
    return Message(**defaults)


@pytest.fixture
def classifier() -> Classifier:
    return Classifier(RuleRegistry.builtin())


class TestScenarios:
    def test_insurance_renewal_high_confidence(self, classifier):
        result = classifier.classify(make_message(
            subject="Your policy renewal due 15 March 2026",
            sender="noreply@acme-insurance.com",
            snippet="",
        ))
        assert result.category == "insurance/renewal"
        assert result.action == ActionKind.DEADLINE_TRACKED
        assert result.confidence == Confidence.HIGH

    def test_fraud_alert(self, classifier):
        result = classifier.classify(make_message(
            subject="Suspicious activity on your account",
            sender="alerts@mybank.com",
            snippet="",
        ))
        assert result.category == "banking/fraud-alert"
        assert result.action == ActionKind.URGENT_ALERT
        assert result.confidence == Confidence.MEDIUM

    def test_subscription_renewal(self, classifier):
        result = classifier.classify(make_message(
            subject="Your annual subscription renews on 2026-06-01",
            sender="billing@streamingco.com",
            snippet="",
        ))
        assert result.category == "subscription/renewal"
        assert result.action == ActionKind.DECISION_REMINDER
        assert result.confidence == Confidence.HIGH
        assert result.lead_time_days is None

    def test_fallback(self, classifier):
        result = classifier.classify(make_message())
        assert result.category == "general/action-required"
        assert result.action == ActionKind.DEFAULT
        assert result.confidence == Confidence.LOW
        assert result.has_keyword is False
        assert result.has_sender_match is False


class TestConfidence:
    def test_sender_only_is_medium(self, classifier):
        result = classifier.classify(make_message(
            subject="Hello", snippet="", sender="noreply@city-dentist.com"
        ))
        assert result.category == "scheduling/appointment"
        assert result.confidence == Confidence.MEDIUM
        assert result.has_sender_match is True
        assert result.has_keyword is False

    def test_keyword_only_is_medium(self, classifier):
        result = classifier.classify(make_message(subject="Out for delivery"))
        assert result.category == "scheduling/delivery"
        assert result.confidence == Confidence.MEDIUM
        assert result.has_keyword is True

    def test_both_is_high(self, classifier):
        result = classifier.classify(make_message(
            subject="Payment due reminder", sender="statements@mybank.com"
        ))
        assert result.category == "banking/payment-due"
        assert result.confidence == Confidence.HIGH


class TestOrdering:
    def test_earlier_rule_wins(self, classifier):
        """Both insurance (renewal) and payment-due keywords match; insurance is declared first."""
        result = classifier.classify(make_message(subject="Renewal: payment due soon"))
        assert result.category == "insurance/renewal"

    def test_first_match_stops_even_if_later_rule_is_stronger(self):
        registry = RuleRegistry([
            Rule(category="first/weak", action="action-required", keywords=("invoice",)),
            Rule(
                category="second/strong",
                action="deadline-tracked",
                keywords=("invoice",),
                sender_patterns=("energy",),
            ),
        ])
        result = Classifier(registry).classify(make_message(
            subject="Your invoice", sender="billing@energy.co"
        ))
        assert result.category == "first/weak"
        assert result.confidence == Confidence.MEDIUM

    def test_appended_rule_does_not_shadow_builtin(self):
        registry = RuleRegistry.builtin()
        registry.append(Rule(category="misc/renewal", action="action-required", keywords=("renewal",)))
        result = Classifier(registry).classify(make_message(subject="Policy renewal"))
        assert result.category == "insurance/renewal"

    def test_case_insensitive(self, classifier):
        result = classifier.classify(make_message(subject="FRAUD ALERT on your card"))
        assert result.category == "banking/fraud-alert"

    def test_snippet_is_searched(self, classifier):
        result = classifier.classify(make_message(subject="FYI", snippet="Your appointment is booked"))
        assert result.category == "scheduling/appointment"

    def test_deterministic(self, classifier):
        message = make_message(subject="Your statement is ready", sender="hello@water.co.uk")
        assert classifier.classify(message) == classifier.classify(message)
