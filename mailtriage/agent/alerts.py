"""
Alert text rendering.

The alert channel only transports text; choosing the banner and trimming
the preview happens here so every channel sends the same message.
"""

from mailtriage.agent.schemas import ActionKind, Classification, Message

DEFAULT_PREVIEW_CHARS = 200
ELLIPSIS = "..."

URGENT_BANNER = "🚨"
ATTENTION_BANNER = "⚠️"
DECISION_BANNER = "🔔"
APPOINTMENT_BANNER = "📅"
GENERIC_BANNER = "📋"

# Telegram legacy Markdown entity markers.
MARKDOWN_SPECIAL = ("_", "*", "`", "[")


def escape_markdown(text: str) -> str:
    for char in MARKDOWN_SPECIAL:
        text = text.replace(char, "\\" + char)
    return text


def select_banner(classification: Classification, urgency: int) -> str:
    if urgency >= 8:
        return URGENT_BANNER
    if urgency >= 6:
        return ATTENTION_BANNER
    if classification.action == ActionKind.DECISION_REMINDER:
        return DECISION_BANNER
    if classification.action == ActionKind.APPOINTMENT:
        return APPOINTMENT_BANNER
    return GENERIC_BANNER


def preview(snippet: str, limit: int = DEFAULT_PREVIEW_CHARS) -> str:
    if not snippet:
        return "No preview"
    if len(snippet) <= limit:
        return snippet
    return snippet[:limit] + ELLIPSIS


def format_alert(
    message: Message,
    classification: Classification,
    urgency: int,
    preview_chars: int = DEFAULT_PREVIEW_CHARS,
) -> str:
    banner = select_banner(classification, urgency)
    heading = classification.subtype.upper()
    return (
        f"{banner} *{heading} REQUIRED*\n"
        f"\n"
        f"*From:* {escape_markdown(message.sender)}\n"
        f"*Subject:* {escape_markdown(message.subject)}\n"
        f"*Urgency:* {urgency}/10\n"
        f"\n"
        f"{escape_markdown(preview(message.snippet, preview_chars))}"
    )
