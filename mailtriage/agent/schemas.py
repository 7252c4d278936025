"""
Data models for the triage pipeline.

These Pydantic models define the shape of all data flowing through the
pipeline: the fetched message, what was extracted from it, how it was
classified, what was rendered, which side effects were requested and how
each of them went.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ActionKind(str, Enum):
    """Rendering/dispatch behavior associated with a category."""
    DEADLINE_TRACKED = "deadline-tracked"
    URGENT_ALERT = "urgent-alert"
    APPOINTMENT = "appointment"
    CALENDAR_EVENT = "calendar-event"
    DECISION_REMINDER = "decision-reminder"
    DEFAULT = "action-required"


class Confidence(str, Enum):
    """
    Strength of classification evidence.

    HIGH: keyword AND sender pattern matched the winning rule.
    MEDIUM: exactly one of them matched.
    LOW: no rule matched, fallback category.
    """
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MessageState(str, Enum):
    """Per-message processing states. FAILED is terminal."""
    FETCHED = "fetched"
    EXTRACTED = "extracted"
    CLASSIFIED = "classified"
    SCORED = "scored"
    RENDERED = "rendered"
    DISPATCHED = "dispatched"
    MARKED = "marked"
    FAILED = "failed"


class Message(BaseModel):
    """A notification message as returned by the mail source. Read-only."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Mail backend message ID")
    sender: str = Field(default="")
    subject: str = Field(default="No Subject")
    snippet: str = Field(default="")
    received: datetime
    link: str = Field(default="")
    labels: frozenset[str] = Field(default_factory=frozenset)

    @property
    def text(self) -> str:
        """Subject and snippet joined, the text every analysis step reads."""
        return f"{self.subject} {self.snippet}"


class SearchQuery(BaseModel):
    """
    Backend-neutral mailbox query: unread mail from an allow-list of
    senders, excluding anything already carrying the triaged label.
    """

    model_config = ConfigDict(frozen=True)

    senders: tuple[str, ...]
    unread_only: bool = True
    exclude_label: str = "triaged"

    def describe(self) -> str:
        parts = []
        if self.senders:
            parts.append("(" + " OR ".join(f"from:{s}" for s in self.senders) + ")")
        if self.unread_only:
            parts.append("is:unread")
        if self.exclude_label:
            parts.append(f"-label:{self.exclude_label}")
        return " ".join(parts)


class Amount(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: Decimal
    currency: str

    @property
    def display(self) -> str:
        if len(self.currency) == 1:
            return f"{self.currency}{self.value:,.2f}"
        return f"{self.value:,.2f} {self.currency}"


class ExtractedEntities(BaseModel):
    """Best-effort facts pulled from a message. Absence is not an error."""

    model_config = ConfigDict(frozen=True)

    deadline: Optional[date] = None
    amount: Optional[Amount] = None


class Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    action: ActionKind
    confidence: Confidence
    has_keyword: bool = False
    has_sender_match: bool = False
    lead_time_days: Optional[int] = None

    @property
    def domain(self) -> str:
        return self.category.split("/", 1)[0]

    @property
    def subtype(self) -> str:
        parts = self.category.split("/", 1)
        return parts[1] if len(parts) == 2 and parts[1] else "action"


class ReminderSchedule(BaseModel):
    """Calendar reminder for a decision-type message."""

    model_config = ConfigDict(frozen=True)

    event_date: date
    reminder_date: date
    lead_time_days: int
    label: str


class Artifact(BaseModel):
    """Rendered follow-up item: issue title, body and labels."""

    model_config = ConfigDict(frozen=True)

    title: str
    body: str
    labels: tuple[str, ...]
    reminder: Optional[ReminderSchedule] = None


# =============================================================================
# SIDE-EFFECT REQUESTS — Returned by the pipeline instead of being printed
# =============================================================================

class CreateIssueRequest(BaseModel):
    step: Literal["create_issue"] = "create_issue"
    title: str
    body: str
    labels: tuple[str, ...]


class ScheduleReminderRequest(BaseModel):
    step: Literal["schedule_reminder"] = "schedule_reminder"
    remind_on: date
    title: str
    description: str


class SendAlertRequest(BaseModel):
    step: Literal["send_alert"] = "send_alert"
    text: str
    urgency: int
    category: str


class MarkProcessedRequest(BaseModel):
    step: Literal["mark_processed"] = "mark_processed"
    message_id: str


SideEffectRequest = Annotated[Union[
    CreateIssueRequest,
    ScheduleReminderRequest,
    SendAlertRequest,
    MarkProcessedRequest,
], Field(discriminator="step")]


class StepOutcome(BaseModel):
    """Result of one side-effect request (or of a failed analysis step)."""
    step: str
    ok: bool
    detail: str = Field(default="")
    reference: Optional[str] = Field(default=None)


class ProcessingResult(BaseModel):
    """Everything the pipeline derived and did for one message."""

    message_id: str
    subject: str = Field(default="")
    state: MessageState = Field(default=MessageState.FETCHED)
    failed_step: Optional[str] = Field(default=None)
    entities: Optional[ExtractedEntities] = Field(default=None)
    classification: Optional[Classification] = Field(default=None)
    urgency: Optional[int] = Field(default=None)
    artifact: Optional[Artifact] = Field(default=None)
    requests: list[SideEffectRequest] = Field(default_factory=list)
    outcomes: list[StepOutcome] = Field(default_factory=list)

    @computed_field
    @property
    def failed(self) -> bool:
        return self.state == MessageState.FAILED or any(not o.ok for o in self.outcomes)

    @computed_field
    @property
    def failure_reason(self) -> Optional[str]:
        for outcome in self.outcomes:
            if not outcome.ok:
                return f"{outcome.step}: {outcome.detail}"
        return None

    @property
    def issue_reference(self) -> Optional[str]:
        for outcome in self.outcomes:
            if outcome.step == "create_issue" and outcome.ok:
                return outcome.reference
        return None


class BatchSummary(BaseModel):
    """Structured end-of-run summary: counts plus per-message results."""
    run_id: str
    query: str = Field(default="")
    total: int = Field(default=0)
    processed: int = Field(default=0)
    failed: int = Field(default=0)
    results: list[ProcessingResult] = Field(default_factory=list)
