"""
Reconciliation types: delivery stages, the branch policy that derives them, and per-item results.
"""

from typing import Iterable, List, Optional, Tuple

from normalize.models import CommitRecord, WorkItem


class DeliveryStage:
    """Inferred deployment progress of a work item. Derived from branch membership, never stored."""

    IN_DEVELOPMENT = "in development"
    IN_TESTING = "in testing"
    IN_STAGED_ROLLOUT = "in staged rollout"
    RELEASED = "released"

    ALL = (IN_DEVELOPMENT, IN_TESTING, IN_STAGED_ROLLOUT, RELEASED)


class BranchPolicy:
    """
    Long-lived branch configuration.

    stage_branches is ordered by precedence: the first branch found among a commit's
    containing branches decides the stage. integration_branches are the normal merge
    targets; anything else counts as a hotfix.
    """

    def __init__(self, stage_branches: List[Tuple[str, str]], integration_branches: List[str]):
        self.stage_branches = list(stage_branches)
        self.integration_branches = list(integration_branches)

    @property
    def long_lived(self) -> set:
        return {b for b, _ in self.stage_branches} | set(self.integration_branches)

    def stage_for_branches(self, branches: Iterable[str]) -> Optional[str]:
        present = set(branches)
        for branch, stage in self.stage_branches:
            if branch in present:
                return stage
        return None


class WorkItemDetail:
    """
    A reconciled work item: its attributable commits, delivery stage and hotfix flag.
    """

    def __init__(self, item: WorkItem, commits: List[CommitRecord], stage: str, is_hotfix: bool):
        self.item = item
        self.commits = commits
        self.stage = stage
        self.is_hotfix = is_hotfix

    def __repr__(self):
        return f"WorkItemDetail({self.item.title!r}, stage={self.stage!r}, hotfix={self.is_hotfix}, commits={len(self.commits)})"
