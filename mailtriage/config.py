"""
Application configuration.

All settings are loaded from environment variables (or a local .env file).
No defaults for secrets. If a required secret is missing, the run fails
before any mail is fetched with a clear error.

Settings are built once by the entry point and passed explicitly to the
pipeline factory; nothing reads configuration from module globals.

Usage:
    from mailtriage.config import Settings
    settings = Settings()
    print(settings.github_repo)
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Azure / Microsoft Graph (mailbox + calendar) ---
    azure_client_id: str = Field(description="Azure AD app registration client ID")
    azure_client_secret: str = Field(description="Azure AD app registration client secret")
    azure_tenant_id: str = Field(description="Azure AD tenant ID")
    graph_base_url: str = Field(default="https://graph.microsoft.com/v1.0")
    graph_scopes: list[str] = Field(
        default=["https://graph.microsoft.com/.default"],
        description="App-only scopes; .default picks up the granted application permissions",
    )
    mail_account: str = Field(description="Mailbox (UPN or address) the forwarded mail lands in")

    # --- Triage ---
    authorized_senders: list[str] = Field(
        default=[],
        description="Only mail forwarded from these addresses is triaged (JSON list in env)",
    )
    triaged_label: str = Field(default="triaged")
    max_results: int = Field(default=20, ge=1, le=100)
    decision_lead_days: int = Field(default=30, ge=0)
    default_currency: str = Field(default="£")
    alert_urgency_threshold: int = Field(default=4, ge=0, le=10)
    alert_preview_chars: int = Field(default=200, ge=1)
    extra_rules_path: Optional[str] = Field(
        default=None, description="YAML file of rules appended after the built-in table"
    )
    rule_revision: Optional[int] = Field(
        default=None, description="Pin the built-in rule table revision (latest when unset)"
    )

    # --- GitHub issues ---
    github_token: str = Field(description="Token with issues:write on the target repository")
    github_repo: str = Field(description="owner/name of the repository issues are filed in")
    github_api_url: str = Field(default="https://api.github.com")

    # --- Telegram alerts (optional; alerts are logged when unset) ---
    telegram_bot_token: Optional[str] = Field(default=None)
    telegram_chat_id: Optional[str] = Field(default=None)
    telegram_api_url: str = Field(default="https://api.telegram.org")

    # --- Calendar reminders ---
    calendar_enabled: bool = Field(default=True)

    # --- App ---
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    log_level: str = Field(default="info")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)
