"""
Local git ingestion: find clones whose origin points at the configured code host and read
the configured user's commits from them.
"""

import os
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple
from urllib.parse import urlparse

from log_config import get_logger
from normalize.models import ActivityWindow, LocalCommit, RepoActivity
from normalize.util import email_local_part, first_line, parse_timestamp

logger = get_logger(__name__)

DEFAULT_EXCLUDE_DIRNAMES = {"node_modules", ".venv", "venv", "__pycache__", "dist", "build", ".tox"}

# unit/record separators keep commit subjects with arbitrary characters parseable
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
LOG_FORMAT = _FIELD_SEP.join(["%H", "%ae", "%aI", "%s"]) + _RECORD_SEP


def run_git(args: List[str], cwd: Path, timeout_s: int = 120) -> Tuple[int, str, str]:
    proc = subprocess.run(["git", *args], cwd=str(cwd), capture_output=True, text=True, timeout=timeout_s)
    return proc.returncode, proc.stdout, proc.stderr


def discover_repositories(roots: Iterable[str], exclude_dirnames: Optional[Set[str]] = None) -> List[Path]:
    """Return every directory under the roots that holds a .git entry. Nested clones are found too."""
    exclude = exclude_dirnames if exclude_dirnames is not None else DEFAULT_EXCLUDE_DIRNAMES
    found: List[Path] = []
    seen = set()
    for root in roots:
        if not os.path.isdir(root):
            logger.warning("Git root %s does not exist; skipping", root)
            continue
        for dirpath, dirnames, filenames in os.walk(root):
            if ".git" in dirnames or ".git" in filenames:
                resolved = Path(dirpath).resolve()
                if resolved not in seen:
                    seen.add(resolved)
                    found.append(resolved)
            dirnames[:] = [d for d in dirnames if d not in exclude and d != ".git"]
    return found


def get_remote_origin(repo: Path) -> str:
    code, out, _ = run_git(["config", "--get", "remote.origin.url"], cwd=repo)
    if code == 0:
        return out.strip()
    return ""


def canonicalize_remote(remote: str) -> str:
    """Normalize ssh and https remotes to 'host/group/repo', lower-cased, without '.git'."""
    r = (remote or "").strip()
    if not r:
        return ""

    if "://" not in r and ":" in r and "@" in r.split(":", 1)[0]:
        left, path = r.split(":", 1)
        host = left.split("@", 1)[1]
        canon = f"{host}/{path}"
    else:
        parsed = urlparse(r)
        if parsed.scheme and parsed.netloc:
            host = parsed.hostname or parsed.netloc
            canon = f"{host}/{parsed.path.lstrip('/')}"
        else:
            canon = r

    canon = canon.rstrip("/")
    if canon.endswith(".git"):
        canon = canon[:-4]
    return canon.lower()


def host_of(url: str) -> str:
    parsed = urlparse(url if "://" in url else f"https://{url}")
    return (parsed.hostname or "").lower()


def remote_matches_host(remote: str, host_url: str) -> bool:
    canon = canonicalize_remote(remote)
    host = host_of(host_url)
    if not canon or not host:
        return False
    return canon.split("/", 1)[0] == host


def parse_log(output: str, repo_name: str) -> List[LocalCommit]:
    commits: List[LocalCommit] = []
    for record in output.split(_RECORD_SEP):
        record = record.strip("\n")
        if not record:
            continue
        parts = record.split(_FIELD_SEP)
        if len(parts) != 4:
            continue
        sha, email, authored, subject = parts
        commits.append(LocalCommit(repo=repo_name, sha=sha, message=first_line(subject), author_email=email, authored_at=parse_timestamp(authored)))
    return commits


def read_commits(repo: Path, author: str, window: ActivityWindow) -> List[LocalCommit]:
    """The author's non-merge commits in the window across all refs.

    git's --author is a loose regex over 'Name <email>', so results are narrowed to an exact
    email local-part match afterwards. Bounds are UTC, the same as for merge requests.
    """
    args = [
        "log",
        "--all",
        "--no-merges",
        f"--author={author}",
        f"--since={window.start.isoformat()} 00:00:00 +0000",
        f"--until={window.end.isoformat()} 23:59:59 +0000",
        f"--pretty=format:{LOG_FORMAT}",
    ]
    code, out, err = run_git(args, cwd=repo)
    if code != 0:
        raise RuntimeError(f"git log failed in {repo}: {err.strip()}")
    wanted = author.lower()
    return [
        c for c in parse_log(out, repo.name)
        if email_local_part(c.author_email) == wanted and window.contains(c.authored_at)
    ]


class LocalGitReader:
    """Collect RepoActivity for local clones of the configured code host."""

    def __init__(self, roots: Iterable[str], host_url: str, author: str, exclude_dirnames: Optional[Set[str]] = None):
        self.roots = list(roots)
        self.host_url = host_url
        self.author = author
        self.exclude_dirnames = exclude_dirnames

    def collect(self, window: ActivityWindow) -> List[RepoActivity]:
        logger.info("Scanning local repositories under %s", ", ".join(self.roots))
        activities: List[RepoActivity] = []
        for repo in discover_repositories(self.roots, self.exclude_dirnames):
            remote = get_remote_origin(repo)
            if not remote_matches_host(remote, self.host_url):
                logger.debug("Skipping %s: origin %r is not on %s", repo, remote, self.host_url)
                continue
            commits = read_commits(repo, self.author, window)
            if commits:
                activities.append(RepoActivity(name=repo.name, path=str(repo), remote=remote, commits=commits))
        logger.info("Found local commits in %d repository(ies)", len(activities))
        return activities
