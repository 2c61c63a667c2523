"""
Normalization utility helpers.
Small helpers to turn raw GitLab / Jira payloads into normalize.models entities.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from normalize.models import CommitRecord, TrackedIssue, WorkItem


def parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (GitLab uses '...Z' or '+08:00' offsets) into an aware datetime."""
    if not raw:
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def first_line(message: Optional[str]) -> str:
    return (message or "").split("\n", 1)[0].strip()


def email_local_part(email: Optional[str]) -> str:
    return (email or "").split("@", 1)[0].strip().lower()


def normalize_merge_request(raw: Dict[str, Any]) -> WorkItem:
    """Create a WorkItem from a GitLab merge request dict."""
    draft = bool(raw.get("draft") or raw.get("work_in_progress"))
    return WorkItem(
        project_id=raw.get("project_id"),
        iid=raw.get("iid"),
        title=raw.get("title") or "",
        description=raw.get("description"),
        state=raw.get("state") or "",
        source_branch=raw.get("source_branch") or "",
        target_branch=raw.get("target_branch") or "",
        url=raw.get("web_url") or "",
        created_at=parse_timestamp(raw.get("created_at")),
        updated_at=parse_timestamp(raw.get("updated_at")),
        merged_at=parse_timestamp(raw.get("merged_at")),
        merge_commit_sha=raw.get("merge_commit_sha"),
        draft=draft,
    )


def normalize_commit(raw: Dict[str, Any]) -> CommitRecord:
    return CommitRecord(sha=raw.get("id") or "", message=first_line(raw.get("message") or raw.get("title")), author_email=raw.get("author_email") or "")


def normalize_issue(raw: Dict[str, Any]) -> TrackedIssue:
    """Create a TrackedIssue from a raw Jira issue dict requested with fields=summary,issuetype,status."""
    fields = raw.get("fields") or {}
    issue_type = fields.get("issuetype")
    status = fields.get("status")
    return TrackedIssue(
        key=raw.get("key") or "",
        summary=fields.get("summary") or "",
        issue_type=(issue_type or {}).get("name", "") if isinstance(issue_type, dict) else (issue_type or ""),
        status=(status or {}).get("name", "") if isinstance(status, dict) else (status or ""),
    )
