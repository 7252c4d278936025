"""
Triage pipeline: the orchestrator for all message processing.

This module ties together entity extraction, classification, urgency
scoring and artifact rendering, then turns the result into side-effect
requests (create issue, schedule reminder, send alert, mark processed)
and hands them to the external collaborators.

The pipeline does NOT talk to any backend directly. It receives
collaborators that satisfy the small protocols below, keeping it testable
and decoupled from Graph, GitHub and Telegram.

Per-message states:
    fetched → extracted → classified → scored → rendered → dispatched → marked
    any analysis step can end in failed(step) instead.

Batch states:
    idle → querying → processing (i of n) → done

Usage:
    from mailtriage.agent.engine import TriagePipeline

    pipeline = TriagePipeline(mail=mail, tracker=tracker, alerts=alerts)

    # Run one batch
    summary = pipeline.run()

    # Analyze one message without side effects
    result = pipeline.analyze(message)
"""

import logging
import uuid
from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from mailtriage.agent.alerts import DEFAULT_PREVIEW_CHARS, format_alert
from mailtriage.agent.classifier import Classifier
from mailtriage.agent.dates import Clock, utc_now
from mailtriage.agent.extract import EntityExtractor
from mailtriage.agent.render import ArtifactRenderer, reminder_description
from mailtriage.agent.rules import DEFAULT_DECISION_LEAD_DAYS, RuleRegistry
from mailtriage.agent.schemas import (
    ActionKind,
    BatchSummary,
    CreateIssueRequest,
    MarkProcessedRequest,
    Message,
    MessageState,
    ProcessingResult,
    ScheduleReminderRequest,
    SearchQuery,
    SendAlertRequest,
    SideEffectRequest,
    StepOutcome,
)
from mailtriage.agent.urgency import UrgencyScorer
from mailtriage.logging.audit import audit
from mailtriage.logging.config import log_context, message_id_var, run_id_var

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 20
DEFAULT_ALERT_THRESHOLD = 4


class CollaboratorError(Exception):
    """A mail, tracker, alert or calendar backend call failed."""


class FatalTriageError(RuntimeError):
    """The batch could not start (e.g. the mailbox could not be queried)."""


# =============================================================================
# COLLABORATOR CONTRACTS
# =============================================================================

class MailSource(Protocol):
    def search(self, query: SearchQuery, max_results: int) -> list[Message]: ...

    def mark_processed(self, message_id: str) -> bool: ...


class IssueTracker(Protocol):
    def create_issue(self, title: str, body: str, labels: list[str]) -> Optional[str]: ...


class AlertChannel(Protocol):
    def send(self, text: str, urgency: int, category: str) -> None: ...


class CalendarService(Protocol):
    def schedule_reminder(self, date: date, title: str, description: str) -> Optional[str]: ...


class TriagePipeline:
    """
    Orchestrates one triage run: query the mailbox, analyze each message,
    dispatch the resulting requests and report per-message outcomes.
    """

    def __init__(
        self,
        mail: MailSource,
        tracker: IssueTracker,
        alerts: AlertChannel,
        calendar: Optional[CalendarService] = None,
        registry: Optional[RuleRegistry] = None,
        authorized_senders: Sequence[str] = (),
        triaged_label: str = "triaged",
        max_results: int = DEFAULT_MAX_RESULTS,
        alert_threshold: int = DEFAULT_ALERT_THRESHOLD,
        alert_preview_chars: int = DEFAULT_PREVIEW_CHARS,
        default_lead_days: int = DEFAULT_DECISION_LEAD_DAYS,
        default_currency: str = "£",
        clock: Clock = utc_now,
    ):
        self._mail = mail
        self._tracker = tracker
        self._alerts = alerts
        self._calendar = calendar
        self._registry = registry or RuleRegistry.builtin()
        self._query = SearchQuery(
            senders=tuple(s.lower().strip() for s in authorized_senders),
            exclude_label=triaged_label,
        )
        self._triaged_label = triaged_label
        self._max_results = max_results
        self._alert_threshold = alert_threshold
        self._alert_preview_chars = alert_preview_chars
        self._clock = clock

        self._extractor = EntityExtractor(clock=clock, default_currency=default_currency)
        self._classifier = Classifier(self._registry)
        self._scorer = UrgencyScorer(self._registry.urgency_weights(), clock=clock)
        self._renderer = ArtifactRenderer(default_lead_days=default_lead_days, clock=clock)

        logger.info(
            "triage_pipeline.initialized",
            extra={
                "action": "triage_pipeline.initialized",
                "rule_revision": self._registry.revision,
                "rule_count": len(self._registry),
                "authorized_senders": len(self._query.senders),
                "calendar_enabled": calendar is not None,
            },
        )

    @property
    def query(self) -> SearchQuery:
        return self._query

    def close(self) -> None:
        """Close every collaborator that holds a connection."""
        for collaborator in (self._mail, self._tracker, self._alerts, self._calendar):
            close = getattr(collaborator, "close", None)
            if close is not None:
                close()

    # =========================================================================
    # BATCH — Query once, then process every message in order
    # =========================================================================

    def run(self) -> BatchSummary:
        """
        Run one full batch.

        Raises:
            FatalTriageError: the mailbox query failed before any message
                was fetched. Per-message failures never raise; they are
                reported in the returned summary.
        """
        run_id = uuid.uuid4().hex[:8]
        with log_context(run_id_var, run_id):
            logger.info(
                "batch.querying",
                extra={
                    "action": "batch.querying",
                    "query": self._query.describe(),
                    "max_results": self._max_results,
                },
            )
            try:
                fetched = self._mail.search(self._query, self._max_results)
            except Exception as e:
                logger.error(
                    "batch.query_failed",
                    extra={"action": "batch.query_failed", "error": str(e)},
                )
                raise FatalTriageError(f"Mailbox query failed: {e}") from e

            messages = [m for m in fetched[: self._max_results] if self._triaged_label not in m.labels]
            skipped = len(fetched) - len(messages)

            summary = BatchSummary(
                run_id=run_id,
                query=self._query.describe(),
                total=len(messages),
            )

            if not messages:
                logger.info("batch.empty", extra={"action": "batch.empty", "skipped": skipped})

            for index, message in enumerate(messages, start=1):
                with log_context(message_id_var, message.id):
                    logger.info(
                        f"Processing {index} of {len(messages)}: {message.id}",
                        extra={"action": "batch.processing", "index": index, "total": len(messages)},
                    )
                    result = self.process(message)

                summary.results.append(result)
                if result.failed:
                    summary.failed += 1
                else:
                    summary.processed += 1

            audit.info(
                "batch.done",
                total=summary.total,
                processed=summary.processed,
                failed=summary.failed,
                skipped=skipped,
            )
            return summary

    # =========================================================================
    # SINGLE MESSAGE — Analyze, then dispatch the planned requests
    # =========================================================================

    def process(self, message: Message, now: Optional[datetime] = None) -> ProcessingResult:
        result = self.analyze(message, now)
        if result.state == MessageState.FAILED:
            return result
        return self.dispatch(result)

    def analyze(self, message: Message, now: Optional[datetime] = None) -> ProcessingResult:
        """
        Extract, classify, score, render and plan requests. No side effects.

        An unexpected error moves the message to FAILED at the step that
        raised; such a message is not marked processed.
        """
        now = now or self._clock()
        result = ProcessingResult(message_id=message.id, subject=message.subject)
        step = "extract"
        try:
            result.entities = self._extractor.extract(message.text, now)
            result.state = MessageState.EXTRACTED

            step = "classify"
            result.classification = self._classifier.classify(message)
            result.state = MessageState.CLASSIFIED

            step = "score"
            result.urgency = self._scorer.score(
                result.classification, result.entities.deadline, now
            )
            result.state = MessageState.SCORED

            step = "render"
            result.artifact = self._renderer.render(
                message, result.classification, result.entities, now
            )
            result.state = MessageState.RENDERED

            step = "plan"
            result.requests = self._plan(message, result)
        except Exception as e:
            logger.exception(
                "message.failed",
                extra={"action": "message.failed", "email_id": message.id, "step": step},
            )
            result.state = MessageState.FAILED
            result.failed_step = step
            result.outcomes.append(StepOutcome(step=step, ok=False, detail=str(e)))
            return result

        audit.info(
            "message.analyzed",
            email_id=message.id,
            category=result.classification.category,
            confidence=result.classification.confidence.value,
            urgency=result.urgency,
            deadline=result.entities.deadline,
            has_amount=result.entities.amount is not None,
            requests=[r.step for r in result.requests],
        )
        return result

    def _plan(self, message: Message, result: ProcessingResult) -> list[SideEffectRequest]:
        classification = result.classification
        artifact = result.artifact
        is_decision = classification.action == ActionKind.DECISION_REMINDER

        requests: list[SideEffectRequest] = [
            CreateIssueRequest(title=artifact.title, body=artifact.body, labels=artifact.labels)
        ]

        if is_decision and artifact.reminder is not None:
            requests.append(
                ScheduleReminderRequest(
                    remind_on=artifact.reminder.reminder_date,
                    title=artifact.reminder.label,
                    description=reminder_description(message, artifact.reminder),
                )
            )

        # Decision reminders always notify, whatever the score.
        if result.urgency >= self._alert_threshold or is_decision:
            requests.append(
                SendAlertRequest(
                    text=format_alert(
                        message, classification, result.urgency, self._alert_preview_chars
                    ),
                    urgency=result.urgency,
                    category=classification.category,
                )
            )

        requests.append(MarkProcessedRequest(message_id=message.id))
        return requests

    def dispatch(self, result: ProcessingResult) -> ProcessingResult:
        """Execute every planned request in order; failures are recorded, not raised."""
        for request in result.requests:
            outcome = self._execute(request)
            result.outcomes.append(outcome)

            if request.step == "mark_processed":
                if outcome.ok:
                    result.state = MessageState.MARKED
            else:
                result.state = MessageState.DISPATCHED

            audit.step(
                request.step,
                outcome.ok,
                email_id=result.message_id,
                detail=outcome.detail,
                reference=outcome.reference,
            )
        return result

    def _execute(self, request: SideEffectRequest) -> StepOutcome:
        step = request.step
        try:
            if isinstance(request, CreateIssueRequest):
                reference = self._tracker.create_issue(
                    request.title, request.body, list(request.labels)
                )
                if reference is None:
                    return StepOutcome(step=step, ok=False, detail="issue tracker returned no issue")
                return StepOutcome(step=step, ok=True, reference=reference)

            if isinstance(request, ScheduleReminderRequest):
                if self._calendar is None:
                    return StepOutcome(step=step, ok=True, detail="skipped: no calendar configured")
                reference = self._calendar.schedule_reminder(
                    request.remind_on, request.title, request.description
                )
                if reference is None:
                    return StepOutcome(step=step, ok=False, detail="calendar returned no event")
                return StepOutcome(step=step, ok=True, reference=reference)

            if isinstance(request, SendAlertRequest):
                self._alerts.send(request.text, request.urgency, request.category)
                return StepOutcome(step=step, ok=True)

            if isinstance(request, MarkProcessedRequest):
                if not self._mail.mark_processed(request.message_id):
                    return StepOutcome(step=step, ok=False, detail="mail source did not confirm")
                return StepOutcome(step=step, ok=True)

            return StepOutcome(step=step, ok=False, detail="unsupported request")

        except Exception as e:
            logger.warning(
                f"{step}.exception",
                extra={"action": f"{step}.exception", "error_type": type(e).__name__},
                exc_info=True,
            )
            return StepOutcome(step=step, ok=False, detail=f"{type(e).__name__}: {e}")
