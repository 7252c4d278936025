"""
Urgency scoring (0-10).

Score = per-category base weight + deadline-proximity bonus, capped at 10.
Categories missing from the weight table get a base of 2.
"""

from datetime import date, datetime
from typing import Optional

from mailtriage.agent.dates import Clock, days_until, utc_now
from mailtriage.agent.rules import DEFAULT_URGENCY_WEIGHT
from mailtriage.agent.schemas import Classification

MAX_URGENCY = 10

# (max days until deadline, bonus), checked in order.
PROXIMITY_BONUSES = (
    (1, 5),
    (3, 3),
    (7, 2),
    (14, 1),
)


def proximity_bonus(days: int) -> int:
    for max_days, bonus in PROXIMITY_BONUSES:
        if days <= max_days:
            return bonus
    return 0


class UrgencyScorer:
    def __init__(self, weights: dict[str, int], clock: Clock = utc_now):
        self._weights = dict(weights)
        self._clock = clock

    def base_weight(self, category: str) -> int:
        return self._weights.get(category, DEFAULT_URGENCY_WEIGHT)

    def score(
        self,
        classification: Classification,
        deadline: Optional[date],
        now: Optional[datetime] = None,
    ) -> int:
        score = self.base_weight(classification.category)
        if deadline is not None:
            score += proximity_bonus(days_until(deadline, now or self._clock()))
        return max(0, min(MAX_URGENCY, score))
