"""
GitLab ingestion client: merge requests authored by the configured user, their commits,
and the branches that contain a given commit.
"""

from typing import Any, Dict, List, Optional

from ingest.http import get_json
from log_config import get_logger
from normalize.models import ActivityWindow, CommitRecord, WorkItem
from normalize.util import normalize_commit, normalize_merge_request

logger = get_logger(__name__)


def in_window(item: WorkItem, window: ActivityWindow) -> bool:
    """True when the item was created, merged or updated inside the window. Closed items never qualify."""
    if item.state == "closed":
        return False
    return window.contains(item.created_at) or window.contains(item.merged_at) or window.contains(item.updated_at)


class GitLabClient:
    """Thin GitLab v4 client. Requests are issued one at a time and block until answered."""

    def __init__(self, host: str, token: str, per_page: int = 100, timeout: Optional[float] = None):
        self.base_url = f"{host.rstrip('/')}/api/v4"
        self.headers = {"PRIVATE-TOKEN": token}
        self.per_page = per_page
        self.timeout = timeout

    def _get_paged(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        url = f"{self.base_url}{path}"
        page = 1
        rows: List[Dict[str, Any]] = []
        while True:
            data = get_json(url, headers=self.headers, params={**params, "per_page": self.per_page, "page": page}, service="GitLab", timeout=self.timeout)
            data = data or []
            rows.extend(data)
            if len(data) < self.per_page:
                break
            page += 1
        return rows

    def list_merge_requests(self, author: str, window: ActivityWindow) -> List[WorkItem]:
        """Merge requests by author with activity in the window.

        The API only filters by a lower bound on updated_at, so the window is re-applied locally.
        """
        logger.info("Collecting merge requests for %s", author)
        params = {"author_username": author, "updated_after": f"{window.start.isoformat()}T00:00:00Z", "scope": "all"}
        raw = self._get_paged("/merge_requests", params)
        items = [normalize_merge_request(r) for r in raw]
        kept = [item for item in items if in_window(item, window)]
        logger.info("Found %d merge request(s), %d inside the window", len(items), len(kept))
        return kept

    def list_commits(self, item: WorkItem) -> List[CommitRecord]:
        raw = self._get_paged(f"/projects/{item.project_id}/merge_requests/{item.iid}/commits", {})
        return [normalize_commit(c) for c in raw]

    def commit_branches(self, project_id: int, sha: str) -> List[str]:
        """Every branch containing the commit; later feature branches push long-lived ones onto later pages."""
        refs = self._get_paged(f"/projects/{project_id}/repository/commits/{sha}/refs", {"type": "branch"})
        return [ref.get("name") for ref in refs if ref.get("name")]
