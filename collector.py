"""
Collection pipeline: GitLab merge requests -> reconciliation -> local git -> Jira lookup.
Each source degrades to an empty contribution on failure; a partial report beats no report.
"""

from typing import Callable, List, Optional, TypeVar

from config import Config
from correlate.linker import collect_issue_keys
from correlate.reconcile import reconcile
from ingest.git_local import LocalGitReader
from ingest.gitlab import GitLabClient
from ingest.jira import JiraClient
from log_config import get_logger
from normalize.models import ActivitySnapshot, ActivityWindow

logger = get_logger(__name__)

T = TypeVar("T")


def _degrade(label: str, step: Callable[[], List[T]], warnings: List[str]) -> List[T]:
    """Run one source step; any failure is logged, recorded and replaced with an empty result."""
    try:
        return step()
    except Exception as exc:
        message = f"{label} collection failed: {exc}"
        logger.warning(message)
        warnings.append(message)
        return []


def collect_all(
    config: Config,
    window: ActivityWindow,
    gitlab: Optional[GitLabClient] = None,
    jira: Optional[JiraClient] = None,
    git: Optional[LocalGitReader] = None,
) -> ActivitySnapshot:
    """Return the activity snapshot for the window. Clients may be injected (tests, alternate hosts)."""
    gitlab = gitlab or GitLabClient(config.gitlab_host, config.gitlab_token, timeout=config.http_timeout)
    jira = jira or JiraClient(config.jira_host, config.username, config.password, timeout=config.http_timeout)
    git = git or LocalGitReader(config.git_repo_roots, config.gitlab_host, config.username)

    warnings: List[str] = []
    items = _degrade("GitLab", lambda: gitlab.list_merge_requests(config.username, window), warnings)
    details = _degrade("Merge request detail", lambda: reconcile(gitlab, items, config.username, config.branch_policy), warnings)
    repos = _degrade("Local git", lambda: git.collect(window), warnings)

    messages = [c.message for d in details for c in d.commits]
    messages.extend(c.message for r in repos for c in r.commits)
    keys = collect_issue_keys(items, messages)
    issues = _degrade("Jira", lambda: jira.search_issues(keys), warnings)

    return ActivitySnapshot(window=window, items=items, details=details, issues=issues, repos=repos, warnings=warnings)
