"""
Microsoft Entra ID (Azure AD) app-only token for Microsoft Graph.

The triage run is unattended, so it uses the OAuth 2.0 client-credentials
flow instead of a signed-in user:
1. The app registration holds a client secret
2. An admin grants it Mail.ReadWrite and Calendars.ReadWrite (application)
3. Each run exchanges the secret for an access token via MSAL
4. Graph calls address the mailbox as /users/{mail_account}

Usage:
    from mailtriage.graph.auth import acquire_app_token
    token = acquire_app_token(settings)
"""

import logging

from msal import ConfidentialClientApplication

from mailtriage.agent.engine import CollaboratorError
from mailtriage.config import Settings

logger = logging.getLogger(__name__)


class GraphAuthError(CollaboratorError):
    """No access token could be acquired for Microsoft Graph."""


def build_msal_app(settings: Settings) -> ConfidentialClientApplication:
    return ConfidentialClientApplication(
        client_id=settings.azure_client_id,
        client_credential=settings.azure_client_secret,
        authority=f"https://login.microsoftonline.com/{settings.azure_tenant_id}",
    )


def acquire_app_token(settings: Settings, app: ConfidentialClientApplication = None) -> str:
    """
    Acquire an app-only Graph access token.

    Raises:
        GraphAuthError: MSAL returned an error instead of a token.
    """
    app = app or build_msal_app(settings)
    result = app.acquire_token_for_client(scopes=settings.graph_scopes)

    if "access_token" in result:
        logger.info(
            "oauth.token_acquired",
            extra={
                "action": "oauth.token_acquired",
                "expires_in": result.get("expires_in"),
            },
        )
        return result["access_token"]

    error = result.get("error_description", result.get("error", "Unknown error"))
    logger.error(
        "oauth.token_failed",
        extra={
            "action": "oauth.token_failed",
            "error": error,
        },
    )
    raise GraphAuthError(f"Could not acquire Graph token: {error}")
