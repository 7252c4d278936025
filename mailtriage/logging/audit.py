"""
Audit logging for pipeline decisions and side effects.

Only metadata goes here (ids, categories, scores, step results). Message
bodies and rendered issue text stay out of the audit trail: fields named
in CONTENT_FIELDS are dropped before the record is emitted.

Usage:
    from mailtriage.logging.audit import audit
    audit.info("message.analyzed", email_id="AAMk...", urgency=7)
    audit.step("create_issue", ok=False, email_id="AAMk...", detail="...")
"""

import logging
from typing import Any

CONTENT_FIELDS = frozenset({"body", "snippet", "text", "description", "subject"})


class AuditLogger:
    """Thin wrapper around logging that enforces structured action fields."""

    def __init__(self):
        self._logger = logging.getLogger("audit")

    def _log(self, level: int, action: str, fields: dict[str, Any]) -> None:
        extra = {k: v for k, v in fields.items() if k not in CONTENT_FIELDS}
        self._logger.log(level, action, extra={"action": action, **extra})

    def info(self, action: str, **fields: Any) -> None:
        self._log(logging.INFO, action, fields)

    def warning(self, action: str, **fields: Any) -> None:
        self._log(logging.WARNING, action, fields)

    def error(self, action: str, **fields: Any) -> None:
        self._log(logging.ERROR, action, fields)

    def step(self, step: str, ok: bool, **fields: Any) -> None:
        """One side-effect outcome: ``<step>.ok`` at info, ``<step>.failed`` at error."""
        if ok:
            self._log(logging.INFO, f"{step}.ok", fields)
        else:
            self._log(logging.ERROR, f"{step}.failed", fields)


audit = AuditLogger()
