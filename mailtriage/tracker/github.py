"""
GitHub Issues client: the IssueTracker collaborator.

Files one issue per triaged message in the configured repository.
There is no de-duplication: re-running after a partial failure can file
the same message twice.

Usage:
    from mailtriage.tracker.github import GitHubIssueTracker

    tracker = GitHubIssueTracker(token="ghp_...", repo="owner/email-triage")
    url = tracker.create_issue("[ACTION] Bill due", "## Source ...", ["email"])
"""

import logging
import time
from typing import Optional

import httpx

from mailtriage.logging.audit import audit

logger = logging.getLogger(__name__)

DEFAULT_GITHUB_API_URL = "https://api.github.com"


class GitHubIssueTracker:
    """Creates issues through the GitHub REST API."""

    def __init__(
        self,
        token: str,
        repo: str,
        api_url: str = DEFAULT_GITHUB_API_URL,
        timeout_seconds: float = 30.0,
    ):
        self._repo = repo
        self._base = api_url.rstrip("/")
        self._http = httpx.Client(
            timeout=timeout_seconds,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )

    def close(self):
        """Close the HTTP client. Call when done."""
        self._http.close()

    def create_issue(self, title: str, body: str, labels: list[str]) -> Optional[str]:
        """
        Create an issue.

        Returns:
            The issue's html_url, or None if GitHub rejected the request or
            could not be reached.
        """
        start = time.monotonic()
        try:
            resp = self._http.post(
                f"{self._base}/repos/{self._repo}/issues",
                json={"title": title, "body": body, "labels": labels},
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "github.create_issue.failed",
                extra={
                    "action": "github.create_issue.failed",
                    "repo": self._repo,
                    "status_code": e.response.status_code,
                    "response_body": e.response.text[:500],
                },
            )
            return None
        except httpx.HTTPError as e:
            logger.error(
                "github.create_issue.failed",
                extra={
                    "action": "github.create_issue.failed",
                    "repo": self._repo,
                    "error": str(e),
                },
            )
            return None

        latency_ms = int((time.monotonic() - start) * 1000)
        audit.info(
            "github.issue.created",
            repo=self._repo,
            issue_number=data.get("number"),
            labels=labels,
            latency_ms=latency_ms,
        )
        return data.get("html_url") or data.get("url")
