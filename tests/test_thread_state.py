import json
import unittest

from storage.thread_state import ThreadState, load_thread_state, save_thread_state


class TestThreadState(unittest.TestCase):
    def test_empty_state_has_no_reply_headers(self):
        self.assertEqual(ThreadState().reply_headers(), {})

    def test_reply_headers_use_reference_chain(self):
        state = ThreadState('<b@x>', ['<a@x>', '<b@x>'])
        self.assertEqual(state.reply_headers(), {'In-Reply-To': '<b@x>', 'References': '<a@x> <b@x>'})

    def test_reply_headers_without_references(self):
        self.assertEqual(ThreadState('<a@x>').reply_headers()['References'], '<a@x>')

    def test_advance_appends(self):
        state = ThreadState('<a@x>', ['<a@x>']).advance('<b@x>')
        self.assertEqual(state.message_id, '<b@x>')
        self.assertEqual(state.references, ['<a@x>', '<b@x>'])


def test_round_trip_through_file(tmp_path):
    path = str(tmp_path / 'state' / 'thread.json')
    save_thread_state(path, ThreadState('<a@x>', ['<a@x>']))
    with open(path, encoding='utf-8') as fh:
        assert json.load(fh) == {'messageId': '<a@x>', 'references': ['<a@x>']}
    loaded = load_thread_state(path)
    assert loaded.message_id == '<a@x>'
    assert loaded.references == ['<a@x>']


def test_missing_or_corrupt_file_is_empty_state(tmp_path):
    assert load_thread_state(str(tmp_path / 'none.json')).message_id is None
    bad = tmp_path / 'bad.json'
    bad.write_text('{not json', encoding='utf-8')
    assert load_thread_state(str(bad)).reply_headers() == {}
    listed = tmp_path / 'list.json'
    listed.write_text('[1, 2]', encoding='utf-8')
    assert load_thread_state(str(listed)).message_id is None
