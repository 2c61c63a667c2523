"""
Merge request reconciliation.

For each feature merge request: keep the commits attributable to the configured user, drop
merge noise, and infer how far the change has travelled through the long-lived branches.
"""
import re
from typing import List, Optional

from correlate.models import BranchPolicy, DeliveryStage, WorkItemDetail
from log_config import get_logger
from normalize.models import CommitRecord, WorkItem
from normalize.util import email_local_part

logger = get_logger(__name__)

NOISE_COMMIT_RE = re.compile(r"^Merge (remote-tracking )?branch ")


def is_branch_promotion(item: WorkItem, policy: BranchPolicy) -> bool:
    """Both ends long-lived: the MR promotes one branch into another rather than delivering feature work."""
    long_lived = policy.long_lived
    return item.source_branch in long_lived and item.target_branch in long_lived


def is_noise_commit(message: str) -> bool:
    return bool(NOISE_COMMIT_RE.match(message or ""))


def filter_commits(commits: List[CommitRecord], username: str) -> List[CommitRecord]:
    """Commits authored by username (email local-part, case-insensitive) that are not branch merges."""
    wanted = username.lower()
    return [c for c in commits if email_local_part(c.author_email) == wanted and not is_noise_commit(c.message)]


def resolve_stage(item: WorkItem, policy: BranchPolicy, containing_branches: Optional[List[str]] = None) -> str:
    """
    Delivery stage for a work item.

    Unmerged items are always in development. Merged items take the highest-precedence stage among
    the branches containing the merge commit; when none of those are long-lived the target branch
    decides, and a short-lived target means the change is still in development.
    """
    if not item.is_merged:
        return DeliveryStage.IN_DEVELOPMENT
    stage = policy.stage_for_branches(containing_branches or [])
    if stage:
        return stage
    return policy.stage_for_branches([item.target_branch]) or DeliveryStage.IN_DEVELOPMENT


def is_hotfix(item: WorkItem, policy: BranchPolicy) -> bool:
    return item.target_branch not in policy.integration_branches


def reconcile(client, items: List[WorkItem], username: str, policy: BranchPolicy) -> List[WorkItemDetail]:
    """Build WorkItemDetail entries for feature merge requests with attributable commits.

    client needs list_commits(item) and commit_branches(project_id, sha). Items are processed
    one after another.
    """
    logger.info("Reconciling %d merge request(s)", len(items))
    details: List[WorkItemDetail] = []
    for item in items:
        if is_branch_promotion(item, policy):
            logger.debug("Skipping branch promotion %s -> %s", item.source_branch, item.target_branch)
            continue
        commits = filter_commits(client.list_commits(item), username)
        if not commits:
            continue

        branches: List[str] = []
        if item.is_merged and item.merge_commit_sha:
            branches = client.commit_branches(item.project_id, item.merge_commit_sha)
        stage = resolve_stage(item, policy, branches)
        hotfix = is_hotfix(item, policy)

        logger.info("  %s -> %s%s", item.title, stage, " [hotfix]" if hotfix else "")
        details.append(WorkItemDetail(item=item, commits=commits, stage=stage, is_hotfix=hotfix))
    return details
