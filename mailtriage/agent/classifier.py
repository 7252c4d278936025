"""
Rule-based message classification.

Walks the rule registry in declaration order and stops at the first rule
whose keywords or sender patterns match. There is no best-match scan:
if two rules could both match, the earlier one always wins.

Usage:
    from mailtriage.agent.classifier import Classifier
    from mailtriage.agent.rules import RuleRegistry

    classifier = Classifier(RuleRegistry.builtin())
    result = classifier.classify(message)  # → Classification
"""

import logging

from mailtriage.agent.rules import FALLBACK_CATEGORY, RuleRegistry
from mailtriage.agent.schemas import ActionKind, Classification, Confidence, Message

logger = logging.getLogger(__name__)


class Classifier:
    """Maps a message to a category, an action kind and a confidence level."""

    def __init__(self, registry: RuleRegistry):
        self._registry = registry

    def classify(self, message: Message) -> Classification:
        text = f"{message.subject} {message.snippet}".lower()
        sender = message.sender.lower()

        for rule in self._registry:
            has_keyword = rule.keyword_hit(text)
            has_sender_match = rule.sender_hit(sender)
            if not (has_keyword or has_sender_match):
                continue

            confidence = (
                Confidence.HIGH if has_keyword and has_sender_match else Confidence.MEDIUM
            )
            logger.debug(
                "classifier.rule_matched",
                extra={
                    "action": "classifier.rule_matched",
                    "category": rule.category,
                    "has_keyword": has_keyword,
                    "has_sender_match": has_sender_match,
                },
            )
            return Classification(
                category=rule.category,
                action=rule.action,
                confidence=confidence,
                has_keyword=has_keyword,
                has_sender_match=has_sender_match,
                lead_time_days=rule.lead_time_days,
            )

        return Classification(
            category=FALLBACK_CATEGORY,
            action=ActionKind.DEFAULT,
            confidence=Confidence.LOW,
        )
