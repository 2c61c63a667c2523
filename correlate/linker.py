"""
Linker heuristics to associate merge requests and commits with Jira issues.
- explicit key match in MR title, source branch or description
- key match in commit messages (MR commits and local commits)
"""
import re
from typing import Dict, Iterable, List, Optional

from normalize.models import TrackedIssue, WorkItem

ISSUE_KEY_PATTERN = r"[A-Z][A-Z0-9]+-\d+"


def find_issue_keys_in_text(text: str, key_pattern: Optional[str] = ISSUE_KEY_PATTERN) -> List[str]:
    """Return issue keys in order of first appearance, without duplicates."""
    if not text:
        return []
    pattern = re.compile(key_pattern)
    return list(dict.fromkeys(m.group(0) for m in pattern.finditer(text)))


# helper: textual fields of a work item that may carry issue keys
def collect_text_fields(item: WorkItem) -> List[str]:
    core_vals = (item.title, item.source_branch, item.description)
    return [v for v in core_vals if isinstance(v, str) and v]


def keys_for_item(item: WorkItem, key_pattern: str = ISSUE_KEY_PATTERN) -> List[str]:
    return find_issue_keys_in_text(" ".join(collect_text_fields(item)), key_pattern)


def collect_issue_keys(items: Iterable[WorkItem], messages: Iterable[str] = (), key_pattern: str = ISSUE_KEY_PATTERN) -> List[str]:
    """
    Deduplicated keys from work item text plus any commit messages.

    Parameters:
        items: work items whose title/branch/description are scanned.
        messages: commit messages (MR commits and local commits).
        key_pattern: optional regex for issue keys. Defaults to e.g. PROJ-123.
    """
    found: Dict[str, None] = {}
    for item in items:
        for key in keys_for_item(item, key_pattern):
            found.setdefault(key, None)
    for message in messages:
        for key in find_issue_keys_in_text(message, key_pattern):
            found.setdefault(key, None)
    return list(found)


def link_keys_to_issues(keys: Iterable[str], issues: Iterable[TrackedIssue]) -> List[TrackedIssue]:
    """Issues matching the given keys, in key order. Keys unknown to the tracker are ignored."""
    by_key = {iss.key: iss for iss in issues}
    return [by_key[k] for k in keys if k in by_key]
