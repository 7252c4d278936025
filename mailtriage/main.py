"""
Command-line entry point: run one triage batch and exit.

Run with:
    mailtriage
    # or
    python -m mailtriage.main

Exit status is 0 when the batch completed, including batches where some
messages failed, and 1 when the run could not start (invalid settings,
no Graph token, mailbox query failed, bad rules file).
"""

import logging
import sys
from typing import Optional

from pydantic import ValidationError

from mailtriage.agent.dates import Clock, utc_now
from mailtriage.agent.engine import CollaboratorError, FatalTriageError, TriagePipeline
from mailtriage.agent.rules import LATEST_REVISION, RuleConfigError, RuleRegistry
from mailtriage.config import Settings
from mailtriage.graph.auth import acquire_app_token
from mailtriage.graph.client import GraphCalendarClient, GraphMailClient
from mailtriage.logging.config import setup_logging
from mailtriage.notify.telegram import LogAlertChannel, TelegramAlertChannel
from mailtriage.tracker.github import GitHubIssueTracker

logger = logging.getLogger(__name__)


def build_registry(settings: Settings) -> RuleRegistry:
    registry = RuleRegistry.builtin(settings.rule_revision or LATEST_REVISION)
    if settings.extra_rules_path:
        registry.load_yaml(settings.extra_rules_path)
    return registry


def build_pipeline(settings: Settings, access_token: str, clock: Clock = utc_now) -> TriagePipeline:
    """Wire the configured collaborators into a pipeline."""
    registry = build_registry(settings)
    graph_kwargs = {
        "base_url": settings.graph_base_url,
        "timeout_seconds": settings.http_timeout_seconds,
    }
    mail = GraphMailClient(
        access_token, settings.mail_account, triaged_label=settings.triaged_label, **graph_kwargs
    )
    calendar: Optional[GraphCalendarClient] = None
    if settings.calendar_enabled:
        calendar = GraphCalendarClient(access_token, settings.mail_account, **graph_kwargs)

    tracker = GitHubIssueTracker(
        token=settings.github_token,
        repo=settings.github_repo,
        api_url=settings.github_api_url,
        timeout_seconds=settings.http_timeout_seconds,
    )

    if settings.telegram_configured:
        alerts = TelegramAlertChannel(
            bot_token=settings.telegram_bot_token,
            chat_id=settings.telegram_chat_id,
            api_url=settings.telegram_api_url,
            timeout_seconds=settings.http_timeout_seconds,
        )
    else:
        logger.info("alerts.log_only", extra={"action": "alerts.log_only"})
        alerts = LogAlertChannel()

    return TriagePipeline(
        mail=mail,
        tracker=tracker,
        alerts=alerts,
        calendar=calendar,
        registry=registry,
        authorized_senders=settings.authorized_senders,
        triaged_label=settings.triaged_label,
        max_results=settings.max_results,
        alert_threshold=settings.alert_urgency_threshold,
        alert_preview_chars=settings.alert_preview_chars,
        default_lead_days=settings.decision_lead_days,
        default_currency=settings.default_currency,
        clock=clock,
    )


def main() -> int:
    try:
        settings = Settings()
    except ValidationError as e:
        setup_logging()
        logger.error(
            "config.invalid",
            extra={
                "action": "config.invalid",
                "missing_or_invalid": [".".join(str(p) for p in err["loc"]) for err in e.errors()],
            },
        )
        return 1

    # --- Initialize logging FIRST ---
    setup_logging(level=settings.log_level)

    pipeline: Optional[TriagePipeline] = None
    try:
        token = acquire_app_token(settings)
        pipeline = build_pipeline(settings, token)
        summary = pipeline.run()
    except (FatalTriageError, CollaboratorError, RuleConfigError, FileNotFoundError) as e:
        logger.error(
            "triage.fatal",
            extra={"action": "triage.fatal", "error_type": type(e).__name__, "error": str(e)},
        )
        return 1
    finally:
        if pipeline is not None:
            pipeline.close()

    print(summary.model_dump_json(indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
