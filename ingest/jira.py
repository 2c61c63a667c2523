"""
Jira ingestion client.
Authenticates with a session cookie from /rest/auth/1/session and looks up issues by key.
"""

from typing import Iterable, List, Optional

import requests

from ingest.http import get_json, post_json
from log_config import get_logger
from normalize.models import TrackedIssue
from normalize.util import normalize_issue

logger = get_logger(__name__)

SEARCH_FIELDS = "summary,issuetype,status"


def build_key_jql(keys: Iterable[str]) -> str:
    return f"key in ({','.join(keys)})"


class JiraClient:
    """Minimal Jira client for resolving issue keys found in merge requests and commits.

    Login happens lazily on the first search, so a run without any keys never touches the network.
    """

    def __init__(self, host: str, username: str, password: str, session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        self.base_url = host.rstrip("/")
        self.username = username
        self.password = password
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout
        self._logged_in = False

    def login(self):
        logger.info("Logging in to Jira as %s", self.username)
        data = post_json(
            f"{self.base_url}/rest/auth/1/session",
            {"username": self.username, "password": self.password},
            session=self.session,
            service="Jira",
            timeout=self.timeout,
        )
        session_info = (data or {}).get("session") or {}
        if session_info.get("name") and session_info.get("value"):
            self.session.cookies.set(session_info["name"], session_info["value"])
        self._logged_in = True

    def search_issues(self, keys: Iterable[str], max_results: int = 100) -> List[TrackedIssue]:
        """Return tracked issues for the given keys. An empty key set makes no request."""
        wanted = sorted(set(keys))
        if not wanted:
            logger.info("No issue keys found; skipping Jira lookup")
            return []
        if not self._logged_in:
            self.login()
        logger.info("Looking up %d Jira key(s): %s", len(wanted), ", ".join(wanted))
        url = f"{self.base_url}/rest/api/2/search"
        issues: List[TrackedIssue] = []
        start_at = 0
        while True:
            params = {"jql": build_key_jql(wanted), "startAt": start_at, "maxResults": max_results, "fields": SEARCH_FIELDS}
            data = get_json(url, params=params, session=self.session, service="Jira", timeout=self.timeout) or {}
            page = data.get("issues") or []
            issues.extend(normalize_issue(raw) for raw in page)
            start_at += len(page)
            if not page or start_at >= data.get("total", start_at):
                break
        logger.info("Found %d issue(s)", len(issues))
        return issues
