"""
Configuration loading for weekly-report.
Values come from the process environment after python-dotenv has read the .env file.
CLI flags only choose which .env file is read; every setting lives in the environment.
"""

import os
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from correlate.models import BranchPolicy, DeliveryStage

DEFAULT_SUBJECT_TEMPLATE = "[Weekly Report] {dateRange} {author}"
DEFAULT_STAGE_BRANCHES = "gray-release:in staged rollout,release:released,main:in testing,master:in testing"
DEFAULT_INTEGRATION_BRANCHES = "main,master"
DEFAULT_TEMPLATES_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "report", "templates")
GROUPINGS = ("work_item", "commit", "category")

COLLECTION_KEYS = ("LDAP_USERNAME", "LDAP_PASSWORD", "GITLAB_HOST", "GITLAB_TOKEN", "JIRA_HOST")


class ConfigError(Exception):
    """Raised for missing or invalid configuration. Always fatal for the step that needs it."""


def _split_list(raw: Optional[str]) -> List[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


def _parse_bool(raw: Optional[str]) -> bool:
    return (raw or "").strip().lower() in ("1", "true", "yes", "on")


def parse_stage_branches(raw: str) -> List[Tuple[str, str]]:
    """Parse 'branch:stage,branch:stage' into an ordered precedence list.

    Raises ConfigError for entries without a colon or with an unknown stage label.
    """
    pairs: List[Tuple[str, str]] = []
    for entry in _split_list(raw):
        branch, sep, stage = entry.partition(":")
        branch, stage = branch.strip(), stage.strip()
        if not sep or not branch:
            raise ConfigError(f"Invalid STAGE_BRANCHES entry '{entry}'; expected branch:stage")
        if stage not in DeliveryStage.ALL:
            raise ConfigError(f"Unknown delivery stage '{stage}' in STAGE_BRANCHES; expected one of {', '.join(DeliveryStage.ALL)}")
        pairs.append((branch, stage))
    return pairs


class Config:
    """Resolved settings for one invocation."""

    def __init__(self, values: Mapping[str, str]):
        env: Dict[str, str] = {k: v for k, v in values.items() if v is not None}
        self.username = env.get("LDAP_USERNAME", "").strip()
        self.password = env.get("LDAP_PASSWORD", "")
        self.gitlab_host = env.get("GITLAB_HOST", "").strip().rstrip("/")
        self.gitlab_token = env.get("GITLAB_TOKEN", "").strip()
        self.jira_host = env.get("JIRA_HOST", "").strip().rstrip("/")

        self.smtp_host = env.get("SMTP_HOST") or "smtp.exmail.qq.com"
        try:
            self.smtp_port = int(env.get("SMTP_PORT") or "465")
        except ValueError:
            raise ConfigError(f"SMTP_PORT must be an integer, got '{env.get('SMTP_PORT')}'")
        self.smtp_user = env.get("SMTP_USER", "")
        self.smtp_pass = env.get("SMTP_PASS", "")
        self.mail_to = _split_list(env.get("MAIL_TO"))
        self.mail_cc = _split_list(env.get("MAIL_CC"))
        self.subject_template = env.get("MAIL_SUBJECT_TEMPLATE") or DEFAULT_SUBJECT_TEMPLATE
        self.author_name = env.get("MAIL_AUTHOR_NAME") or self.username
        self.mail_thread = _parse_bool(env.get("MAIL_THREAD"))
        self.mail_template = env.get("MAIL_TEMPLATE") or "email-light"

        self.templates_dir = env.get("TEMPLATES_DIR") or DEFAULT_TEMPLATES_DIR
        self.drafts_dir = env.get("DRAFTS_DIR") or os.path.join(os.getcwd(), "drafts")
        self.thread_state_file = env.get("THREAD_STATE_FILE") or os.path.join(os.getcwd(), ".mail-thread.json")
        self.git_repo_roots = _split_list(env.get("GIT_REPO_ROOTS")) or [os.getcwd()]

        self.branch_policy = BranchPolicy(
            stage_branches=parse_stage_branches(env.get("STAGE_BRANCHES") or DEFAULT_STAGE_BRANCHES),
            integration_branches=_split_list(env.get("INTEGRATION_BRANCHES") or DEFAULT_INTEGRATION_BRANCHES),
        )

        self.grouping = (env.get("REPORT_GROUPING") or "work_item").strip().lower()
        if self.grouping not in GROUPINGS:
            raise ConfigError(f"REPORT_GROUPING must be one of {', '.join(GROUPINGS)}, got '{self.grouping}'")

        timeout = env.get("HTTP_TIMEOUT")
        try:
            self.http_timeout = float(timeout) if timeout else None
        except ValueError:
            raise ConfigError(f"HTTP_TIMEOUT must be a number of seconds, got '{timeout}'")

        self._raw = env

    def missing(self, keys) -> List[str]:
        return [k for k in keys if not (self._raw.get(k) or "").strip()]

    def require_collection(self):
        """Fail before any network activity when collection credentials are absent."""
        missing = self.missing(COLLECTION_KEYS)
        if missing:
            raise ConfigError("Missing required configuration: " + ", ".join(missing))

    def require_mail(self):
        """Fail before any SMTP connection when credentials or recipients are absent."""
        missing = self.missing(("SMTP_USER", "SMTP_PASS"))
        if not self.mail_to:
            missing.append("MAIL_TO")
        if missing:
            raise ConfigError("Missing mail configuration: " + ", ".join(missing))

    def jira_browse_url(self, key: str) -> str:
        return f"{self.jira_host}/browse/{key}"


def load_config(env_file: Optional[str] = None) -> Config:
    """Read .env (explicit path, or ./.env when present) into the environment and build a Config."""
    if env_file:
        path = Path(env_file)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {env_file}")
        load_dotenv(path)
    else:
        load_dotenv(Path.cwd() / ".env")
    return Config(os.environ)
