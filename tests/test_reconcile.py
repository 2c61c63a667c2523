"""
Reconciliation rules: delivery stage precedence, branch-promotion exclusion, commit attribution.
"""
import pytest

from correlate.models import DeliveryStage
from correlate.reconcile import filter_commits, is_branch_promotion, is_hotfix, is_noise_commit, reconcile, resolve_stage
from factories import FakeGitLab, make_commit, make_config, make_item

POLICY = make_config().branch_policy


@pytest.mark.parametrize('state', ['opened', 'closed', 'locked'])
def test_unmerged_items_are_in_development(state):
    item = make_item(state=state)
    assert resolve_stage(item, POLICY, ['gray-release', 'release', 'main']) == DeliveryStage.IN_DEVELOPMENT


def test_staged_rollout_outranks_other_branches():
    item = make_item()
    assert resolve_stage(item, POLICY, ['main', 'release', 'gray-release']) == DeliveryStage.IN_STAGED_ROLLOUT


def test_release_outranks_integration_branches():
    assert resolve_stage(make_item(), POLICY, ['main', 'release']) == DeliveryStage.RELEASED
    assert resolve_stage(make_item(), POLICY, ['master']) == DeliveryStage.IN_TESTING


def test_falls_back_to_target_branch_when_no_long_lived_branch_contains_commit():
    assert resolve_stage(make_item(target='release'), POLICY, ['feature/y']) == DeliveryStage.RELEASED
    assert resolve_stage(make_item(target='main'), POLICY, []) == DeliveryStage.IN_TESTING
    assert resolve_stage(make_item(target='feature/base'), POLICY, []) == DeliveryStage.IN_DEVELOPMENT


def test_stage_precedence_is_configurable():
    policy = make_config(STAGE_BRANCHES='prod:released,staging:in testing').branch_policy
    assert resolve_stage(make_item(), policy, ['staging', 'prod']) == DeliveryStage.RELEASED
    assert resolve_stage(make_item(), policy, ['main']) == DeliveryStage.IN_DEVELOPMENT


def test_branch_promotion_detection():
    assert is_branch_promotion(make_item(source='release', target='main'), POLICY)
    assert is_branch_promotion(make_item(source='main', target='gray-release'), POLICY)
    assert not is_branch_promotion(make_item(source='feature/a', target='main'), POLICY)


@pytest.mark.parametrize('message', ["Merge branch 'main' into feature/x", "Merge remote-tracking branch 'origin/main' into f"])
def test_merge_noise_commits(message):
    assert is_noise_commit(message)


def test_non_noise_merge_wording_is_kept():
    assert not is_noise_commit('Merge request follow-up: fix typo')
    assert not is_noise_commit("fix: Merge branch handling")


def test_filter_commits_by_email_local_part_and_noise():
    commits = [
        make_commit('feat: add thing', email='JDoe@corp.example.com', sha='1'),
        make_commit("Merge branch 'main' into feature/x", sha='2'),
        make_commit('fix: other person', email='someone@example.com', sha='3'),
        make_commit('fix: prefix only', email='jdoe.smith@example.com', sha='4'),
    ]
    assert [c.sha for c in filter_commits(commits, 'jdoe')] == ['1']


def test_hotfix_when_target_is_not_integration_branch():
    assert is_hotfix(make_item(target='release'), POLICY)
    assert not is_hotfix(make_item(target='main'), POLICY)
    assert not is_hotfix(make_item(target='master'), POLICY)


def test_reconcile_scenario_release_and_main():
    item = make_item(title='HCM-50624 fix default applicant', sha='m1')
    gitlab = FakeGitLab(commits={1: [make_commit('fix default applicant')]}, branches={'m1': ['main', 'release']})
    details = reconcile(gitlab, [item], 'jdoe', POLICY)
    assert len(details) == 1
    assert details[0].stage == DeliveryStage.RELEASED
    assert details[0].is_hotfix is False


def test_reconcile_excludes_branch_promotion_without_fetching():
    promo = make_item(title='release to main', source='release', target='main', iid=7)
    gitlab = FakeGitLab(commits={7: [make_commit('fix something')]})
    assert reconcile(gitlab, [promo], 'jdoe', POLICY) == []
    assert ('list_commits', 7) not in gitlab.calls


def test_reconcile_drops_items_without_attributable_commits():
    item = make_item(iid=3)
    gitlab = FakeGitLab(commits={3: [make_commit("Merge branch 'main' into feature/x"), make_commit('x', email='other@example.com')]})
    assert reconcile(gitlab, [item], 'jdoe', POLICY) == []


def test_reconcile_open_item_skips_branch_lookup():
    item = make_item(state='opened', iid=4)
    gitlab = FakeGitLab(commits={4: [make_commit('wip')]})
    details = reconcile(gitlab, [item], 'jdoe', POLICY)
    assert details[0].stage == DeliveryStage.IN_DEVELOPMENT
    assert not any(call[0] == 'commit_branches' for call in gitlab.calls)


def test_reconcile_merged_without_sha_uses_target_branch():
    item = make_item(target='gray-release', iid=5)
    item.merge_commit_sha = None
    gitlab = FakeGitLab(commits={5: [make_commit('hotfix it')]})
    details = reconcile(gitlab, [item], 'jdoe', POLICY)
    assert details[0].stage == DeliveryStage.IN_STAGED_ROLLOUT
    assert details[0].is_hotfix is True
