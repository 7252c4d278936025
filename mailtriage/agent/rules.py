"""
Classification rule registry.

Rules are an explicitly ordered sequence: the classifier stops at the first
rule that matches, so declaration order decides every tie. The built-in
table is versioned. Revision 2 is an additive migration over revision 1 and
only appends; nothing may be inserted ahead of an existing rule.

Extra rules can be appended at startup from a YAML file:

    - category: travel/check-in
      action: deadline-tracked
      urgency_weight: 3
      keywords: ["check in now", "online check-in"]
      sender_patterns: ["airline", "airways"]

Usage:
    from mailtriage.agent.rules import RuleRegistry

    registry = RuleRegistry.builtin()
    registry.load_yaml("config/rules.yaml")
    for rule in registry: ...
"""

import logging
import re
from pathlib import Path
from typing import Iterator, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from mailtriage.agent.schemas import ActionKind

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "general/action-required"
DEFAULT_URGENCY_WEIGHT = 2
DEFAULT_DECISION_LEAD_DAYS = 30


class RuleConfigError(ValueError):
    """Raised when a rule or a rules file is malformed."""


class Rule(BaseModel):
    """One category rule: keywords, sender patterns and the action to take."""

    model_config = ConfigDict(frozen=True)

    category: str
    action: ActionKind
    keywords: tuple[str, ...] = Field(default=())
    sender_patterns: tuple[str, ...] = Field(default=())
    urgency_weight: Optional[int] = Field(default=None, ge=0, le=10)
    lead_time_days: Optional[int] = Field(default=None, ge=0)

    @field_validator("category")
    @classmethod
    def _two_part_category(cls, value: str) -> str:
        domain, _, subtype = value.partition("/")
        if not domain or not subtype:
            raise ValueError(f"category must look like 'domain/subtype', got {value!r}")
        return value

    @field_validator("keywords")
    @classmethod
    def _lowercase_keywords(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(k.lower() for k in value if k)

    @field_validator("sender_patterns")
    @classmethod
    def _valid_patterns(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid sender pattern {pattern!r}: {e}") from e
        return value

    def keyword_hit(self, text: str) -> bool:
        """Any keyword is a substring of the (already lowercased) text."""
        return any(keyword in text for keyword in self.keywords)

    def sender_hit(self, sender: str) -> bool:
        return any(re.search(p, sender, re.IGNORECASE) for p in self.sender_patterns)


# =============================================================================
# BUILT-IN TABLE — one list per revision, applied in order
# =============================================================================

REVISION_1: tuple[Rule, ...] = (
    Rule(
        category="insurance/renewal",
        action=ActionKind.DEADLINE_TRACKED,
        urgency_weight=3,
        keywords=("renewal", "renew by", "expires", "expiring", "policy ending", "renew your policy"),
        sender_patterns=("insurance", "policy"),
    ),
    # Ahead of payment-due: every bank sender would otherwise land there.
    Rule(
        category="banking/fraud-alert",
        action=ActionKind.URGENT_ALERT,
        urgency_weight=5,
        keywords=("suspicious", "fraud alert", "unusual activity", "security alert", "blocked"),
        sender_patterns=("security", "fraud"),
    ),
    Rule(
        category="banking/payment-due",
        action=ActionKind.DEADLINE_TRACKED,
        urgency_weight=4,
        keywords=("payment due", "minimum payment", "balance due", "due date", "payment required"),
        sender_patterns=("bank", "credit card", "loan", "mortgage"),
    ),
    Rule(
        category="scheduling/appointment",
        action=ActionKind.APPOINTMENT,
        urgency_weight=2,
        keywords=("appointment", "booking confirmed", "see you on", "scheduled for", "reservation confirmed"),
        sender_patterns=("clinic", "surgery", "dentist", "doctor", "nhs", "medical"),
    ),
    Rule(
        category="scheduling/delivery",
        action=ActionKind.CALENDAR_EVENT,
        urgency_weight=1,
        keywords=("delivery slot", "out for delivery", "arriving today", "delivery scheduled"),
        sender_patterns=("delivery", "courier", "sainsbury", "amazon", "dhl", "ups", "fedex"),
    ),
    Rule(
        category="utilities/bill-due",
        action=ActionKind.DEADLINE_TRACKED,
        urgency_weight=3,
        keywords=("bill due", "payment due", "statement", "invoice"),
        sender_patterns=("energy", "gas", "electric", "water", "broadband", "phone", "utility"),
    ),
)

REVISION_2: tuple[Rule, ...] = (
    # No lead time here: the configured decision_lead_days applies.
    Rule(
        category="subscription/renewal",
        action=ActionKind.DECISION_REMINDER,
        urgency_weight=2,
        keywords=("subscription", "renews on", "auto-renew", "membership", "free trial ends"),
        sender_patterns=("subscription", "billing", "membership"),
    ),
)

REVISIONS: tuple[tuple[Rule, ...], ...] = (REVISION_1, REVISION_2)
LATEST_REVISION = len(REVISIONS)


class RuleRegistry:
    """
    Ordered, append-only rule table.

    Iteration order is evaluation order. Categories are unique; appending a
    category that already exists is an error rather than a silent override.
    """

    def __init__(self, rules: Optional[list[Rule]] = None, revision: int = 0):
        self._rules: list[Rule] = []
        self.revision = revision
        for rule in rules or []:
            self.append(rule)

    @classmethod
    def builtin(cls, revision: int = LATEST_REVISION) -> "RuleRegistry":
        """Build the built-in table with every migration up to ``revision``."""
        if not 1 <= revision <= LATEST_REVISION:
            raise RuleConfigError(
                f"Unknown rule revision {revision}; expected 1..{LATEST_REVISION}"
            )
        registry = cls()
        for rules in REVISIONS[:revision]:
            for rule in rules:
                registry.append(rule)
        registry.revision = revision
        return registry

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    @property
    def categories(self) -> list[str]:
        return [rule.category for rule in self._rules]

    def get(self, category: str) -> Optional[Rule]:
        for rule in self._rules:
            if rule.category == category:
                return rule
        return None

    def append(self, rule: Rule) -> None:
        if self.get(rule.category) is not None:
            raise RuleConfigError(f"Duplicate rule category: {rule.category}")
        self._rules.append(rule)

    def urgency_weights(self) -> dict[str, int]:
        """Category → base urgency weight, for rules that declare one."""
        return {
            rule.category: rule.urgency_weight
            for rule in self._rules
            if rule.urgency_weight is not None
        }

    def load_yaml(self, yaml_path: str) -> int:
        """
        Append extension rules from a YAML list. Returns how many were added.

        The whole file is validated before anything is appended.
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Rules file not found: {yaml_path}")

        with open(path) as f:
            data = yaml.safe_load(f) or []

        if isinstance(data, dict):
            data = data.get("rules", [])
        if not isinstance(data, list):
            raise RuleConfigError(f"{yaml_path}: expected a list of rules")

        try:
            rules = [Rule.model_validate(item) for item in data]
        except ValidationError as e:
            raise RuleConfigError(f"{yaml_path}: {e}") from e

        seen = set(self.categories)
        for rule in rules:
            if rule.category in seen:
                raise RuleConfigError(f"{yaml_path}: duplicate rule category {rule.category}")
            seen.add(rule.category)

        for rule in rules:
            self.append(rule)

        logger.info(
            "rules.loaded",
            extra={
                "action": "rules.loaded",
                "path": str(path),
                "added": len(rules),
                "total_rules": len(self._rules),
            },
        )
        return len(rules)
