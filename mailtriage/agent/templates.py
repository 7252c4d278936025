"""
Issue body templates for every action kind.

This is the single file to edit when you need to change what a tracker
issue looks like. The {placeholders} are filled in by the renderer.

IMPORTANT:
- Templates must stay deterministic: no timestamps or other values that
  are not passed in explicitly.
- Bodies are plain markdown-style text; keep headers stable, people
  search for them in the tracker.
"""

FOOTER = "---\n*Auto-created by mailtriage*"

NO_PREVIEW = "No preview available"

# =============================================================================
# DEADLINE-TRACKED — bills, payments, policy renewals
# =============================================================================

DEADLINE_BODY = """\
## Source
- **From:** {sender}
- **Received:** {received}
- **Link:** {link}

## Deadline
- **Due:** {due}
- **Days remaining:** {days_remaining}

## Details
{snippet}
{amount_block}
{footer}"""

# =============================================================================
# APPOINTMENT
# =============================================================================

APPOINTMENT_BODY = """\
## Appointment Details
- **Date:** {date}
- **Source:** {sender}

## Notes
{snippet}

[Original message]({link})

---
*Consider adding to calendar*"""

# =============================================================================
# DECISION REMINDER — subscription renewals and similar keep-or-cancel calls
# =============================================================================

DECISION_CHECKLIST = (
    "Am I still using this regularly?",
    "Has the price gone up since the last renewal?",
    "Is there a cheaper plan or a better alternative?",
    "Does renewing lock me into a new minimum term?",
    "Decision: renew, downgrade or cancel?",
)

DECISION_BODY = """\
## Renewal
- **Renewal date:** {renewal_date}
- **Decide by:** {decide_by}
- **Lead time:** {lead_time_days} days
- **From:** {sender}
- **Received:** {received}
{amount_line}{reminder_note}
## Decision checklist
{checklist}

## Details
{snippet}

[Original message]({link})

{footer}"""

REMINDER_SKIPPED_NOTE = "\n_No renewal date found in the message, calendar reminder not scheduled._\n"

# =============================================================================
# DEFAULT — unclassified and everything without a dedicated template
# =============================================================================

DEFAULT_BODY = """\
## Source
- **From:** {sender}
- **Received:** {received}

## Action Required
{snippet}

[Original message]({link})

{footer}"""

REMINDER_DESCRIPTION = """\
Decision due for: {subject}
Renewal date: {renewal_date}
From: {sender}
Link: {link}"""


def format_checklist(items: tuple[str, ...] = DECISION_CHECKLIST) -> str:
    return "\n".join(f"- [ ] {item}" for item in items)
