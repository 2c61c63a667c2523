"""
Correlate package: issue-key linking and merge request reconciliation.
"""

from .linker import collect_issue_keys, find_issue_keys_in_text
from .reconcile import reconcile

__all__ = ["collect_issue_keys", "find_issue_keys_in_text", "reconcile"]
