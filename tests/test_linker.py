import unittest
from correlate.linker import find_issue_keys_in_text, collect_issue_keys, keys_for_item, link_keys_to_issues
from normalize.models import TrackedIssue
from factories import make_item


class TestLinker(unittest.TestCase):
    def test_find_keys(self):
        text = "Fixed PROJ-123 and addressed PROJ-456 in this change, see PROJ-123 again"
        keys = find_issue_keys_in_text(text)
        self.assertEqual(keys, ['PROJ-123', 'PROJ-456'])

    def test_find_keys_requires_uppercase_prefix_of_two_or_more(self):
        self.assertEqual(find_issue_keys_in_text("proj-3 A-1 HCMBUGS-16852"), ['HCMBUGS-16852'])

    def test_empty_text(self):
        self.assertEqual(find_issue_keys_in_text(''), [])
        self.assertEqual(find_issue_keys_in_text(None), [])

    def test_keys_for_item_scans_title_branch_and_description(self):
        item = make_item(title='HCM-1 title', source='feature/HCM-2-branch', description='Relates to HCMBUGS-3')
        self.assertEqual(keys_for_item(item), ['HCM-1', 'HCM-2', 'HCMBUGS-3'])

    def test_collect_issue_keys_dedupes_across_items_and_commits(self):
        items = [make_item(title='HCM-1 a', iid=1), make_item(title='HCM-1 b', source='HCM-9', iid=2)]
        keys = collect_issue_keys(items, ['fix HCM-9', 'chore: HCM-10 bump'])
        self.assertEqual(keys, ['HCM-1', 'HCM-9', 'HCM-10'])

    def test_collect_issue_keys_none_found(self):
        self.assertEqual(collect_issue_keys([make_item(title='no key here', source='feature/x')], ['tidy up']), [])

    def test_link_keys_to_issues_ignores_unknown_keys(self):
        issues = [TrackedIssue('HCM-1', 'one', 'Story', 'Done'), TrackedIssue('HCM-2', 'two', 'Bug', 'Open')]
        linked = link_keys_to_issues(['HCM-2', 'HCM-404'], issues)
        self.assertEqual([i.key for i in linked], ['HCM-2'])


if __name__ == '__main__':
    unittest.main()
