"""
Unified data models for the activity snapshot.
"""

from datetime import date, datetime, time, timezone
from typing import List, Optional


class ActivityWindow:
    """
    Closed calendar-day interval [start, end]. Comparisons happen in UTC; display uses the calendar days.
    """

    def __init__(self, start: date, end: date):
        if start > end:
            raise ValueError(f"Window start {start.isoformat()} is after end {end.isoformat()}")
        self.start = start
        self.end = end

    @classmethod
    def parse(cls, start: str, end: str) -> "ActivityWindow":
        return cls(date.fromisoformat(start), date.fromisoformat(end))

    def utc_bounds(self):
        lower = datetime.combine(self.start, time(0, 0, 0), tzinfo=timezone.utc)
        upper = datetime.combine(self.end, time(23, 59, 59), tzinfo=timezone.utc)
        return lower, upper

    def contains(self, moment: Optional[datetime]) -> bool:
        if moment is None:
            return False
        lower, upper = self.utc_bounds()
        return lower <= moment.astimezone(timezone.utc) <= upper

    def display(self) -> str:
        return f"{_dotted(self.start)} - {_dotted(self.end)}"

    def dotted_range(self) -> str:
        return f"{_dotted(self.start)}-{_dotted(self.end)}"

    def __eq__(self, other):
        return isinstance(other, ActivityWindow) and (self.start, self.end) == (other.start, other.end)

    def __repr__(self):
        return f"ActivityWindow({self.start.isoformat()}, {self.end.isoformat()})"


def _dotted(d: date) -> str:
    return d.isoformat().replace("-", ".")


class WorkItem:
    """
    Merge request projection.
    """

    def __init__(
        self,
        project_id: int,
        iid: int,
        title: str,
        description: Optional[str],
        state: str,
        source_branch: str,
        target_branch: str,
        url: str,
        created_at: Optional[datetime],
        updated_at: Optional[datetime] = None,
        merged_at: Optional[datetime] = None,
        merge_commit_sha: Optional[str] = None,
        draft: bool = False,
    ):
        self.project_id = project_id
        self.iid = iid
        self.title = title
        self.description = description
        self.state = state  # opened/closed/merged/locked
        self.source_branch = source_branch
        self.target_branch = target_branch
        self.url = url
        self.created_at = created_at
        self.updated_at = updated_at
        self.merged_at = merged_at
        self.merge_commit_sha = merge_commit_sha
        self.draft = draft

    @property
    def is_merged(self) -> bool:
        return self.state == "merged"

    def __repr__(self):
        return f"WorkItem({self.project_id}!{self.iid} {self.title!r} {self.state})"


class CommitRecord:
    """
    A commit attributed to a work item; message is the first line only.
    """

    def __init__(self, sha: str, message: str, author_email: str = ""):
        self.sha = sha
        self.message = message
        self.author_email = author_email


class TrackedIssue:
    """
    Issue-tracker record referenced by a work item or commit.
    """

    def __init__(self, key: str, summary: str, issue_type: str, status: str):
        self.key = key
        self.summary = summary
        self.issue_type = issue_type  # Story/Bug/Task/...
        self.status = status

    @property
    def category(self) -> str:
        return "bug" if "bug" in (self.issue_type or "").lower() else "feature"


class LocalCommit:
    """
    Commit read from a local clone.
    """

    def __init__(self, repo: str, sha: str, message: str, author_email: str, authored_at: Optional[datetime] = None):
        self.repo = repo
        self.sha = sha
        self.message = message
        self.author_email = author_email
        self.authored_at = authored_at


class RepoActivity:
    """
    Local repository whose origin points at the configured code host, with the user's commits in the window.
    """

    def __init__(self, name: str, path: str, remote: str, commits: Optional[List[LocalCommit]] = None):
        self.name = name
        self.path = path
        self.remote = remote
        self.commits = commits or []


class ActivitySnapshot:
    """
    Everything collected for one report. details holds correlate.models.WorkItemDetail entries.
    """

    def __init__(self, window: ActivityWindow, items=None, details=None, issues=None, repos=None, warnings=None):
        self.window = window
        self.items: List[WorkItem] = items or []
        self.details = details or []
        self.issues: List[TrackedIssue] = issues or []
        self.repos: List[RepoActivity] = repos or []
        self.warnings: List[str] = warnings or []
