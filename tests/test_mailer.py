"""
Mail delivery with a fake SMTP connection: recipients validation, subject, threading state.
"""
import logging
import os
import smtplib
from unittest.mock import patch

import pytest

from config import ConfigError
from normalize.models import ActivityWindow
from report import mailer
from report.mailer import build_subject, connect_smtp, html_to_plaintext, send_report
from storage.thread_state import ThreadState, load_thread_state, save_thread_state
from factories import make_config

WINDOW = ActivityWindow.parse('2026-02-16', '2026-02-20')
HTML = '<h1>Weekly Report</h1><ul><li>fix &amp; test</li></ul>'


class FakeSMTP:
    def __init__(self):
        self.logged_in = None
        self.sent = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def login(self, user, password):
        self.logged_in = (user, password)

    def send_message(self, msg, from_addr=None, to_addrs=None):
        self.sent.append((msg, from_addr, to_addrs))


def _connector(server, calls):
    def connect(host, port):
        calls.append((host, port))
        return server
    return connect


def _mail_config(tmp_path, **overrides):
    values = dict(
        SMTP_USER='jdoe@example.com',
        SMTP_PASS='pw',
        MAIL_TO='lead@example.com',
        MAIL_CC='team@example.com',
        THREAD_STATE_FILE=str(tmp_path / '.mail-thread.json'),
    )
    values.update(overrides)
    return make_config(**values)


def test_build_subject():
    assert build_subject('[Weekly Report] {dateRange} {author}', 'Jane', WINDOW) == '[Weekly Report] 2026.02.16-2026.02.20 Jane'


def test_html_to_plaintext():
    assert html_to_plaintext(HTML) == 'Weekly Report\nfix & test'


def test_empty_recipients_fail_before_connecting(tmp_path):
    calls = []
    config = _mail_config(tmp_path, MAIL_TO='')
    with pytest.raises(ConfigError):
        send_report(config, HTML, WINDOW, connect=_connector(FakeSMTP(), calls))
    assert calls == []


def test_send_without_threading_leaves_state_file_alone(tmp_path):
    server, calls = FakeSMTP(), []
    config = _mail_config(tmp_path)
    message_id = send_report(config, HTML, WINDOW, connect=_connector(server, calls))

    assert calls == [('smtp.exmail.qq.com', 465)]
    assert server.logged_in == ('jdoe@example.com', 'pw')
    msg, from_addr, to_addrs = server.sent[0]
    assert from_addr == 'jdoe@example.com'
    assert to_addrs == ['lead@example.com', 'team@example.com']
    assert msg['Subject'] == '[Weekly Report] 2026.02.16-2026.02.20 jdoe'
    assert msg['Cc'] == 'team@example.com'
    assert msg['Message-ID'] == message_id
    assert msg['In-Reply-To'] is None
    assert [part.get_content_type() for part in msg.get_payload()] == ['text/plain', 'text/html']
    assert not os.path.exists(config.thread_state_file)


def test_threading_replies_to_previous_and_persists(tmp_path):
    config = _mail_config(tmp_path, MAIL_THREAD='1', MAIL_AUTHOR_NAME='Jane')
    save_thread_state(config.thread_state_file, ThreadState('<first@example.com>', ['<first@example.com>']))

    server = FakeSMTP()
    message_id = send_report(config, HTML, WINDOW, connect=_connector(server, []))

    msg = server.sent[0][0]
    assert msg['In-Reply-To'] == '<first@example.com>'
    assert msg['References'] == '<first@example.com>'
    state = load_thread_state(config.thread_state_file)
    assert state.message_id == message_id
    assert state.references == ['<first@example.com>', message_id]


def test_first_threaded_send_starts_chain(tmp_path):
    config = _mail_config(tmp_path, MAIL_THREAD='true')
    server = FakeSMTP()
    message_id = send_report(config, HTML, WINDOW, connect=_connector(server, []))
    assert server.sent[0][0]['In-Reply-To'] is None
    assert load_thread_state(config.thread_state_file).references == [message_id]


def test_unwritable_thread_state_does_not_fail_a_sent_report(tmp_path, monkeypatch, caplog):
    config = _mail_config(tmp_path, MAIL_THREAD='true')

    def readonly(path, state):
        raise PermissionError(13, 'Permission denied', path)

    monkeypatch.setattr(mailer, 'save_thread_state', readonly)
    server = FakeSMTP()
    with caplog.at_level(logging.WARNING, logger='report.mailer'):
        message_id = send_report(config, HTML, WINDOW, connect=_connector(server, []))

    assert len(server.sent) == 1
    assert message_id == server.sent[0][0]['Message-ID']
    assert 'thread state could not be saved' in caplog.text


def test_starttls_failure_closes_connection():
    with patch.object(smtplib, 'SMTP') as smtp_cls:
        smtp_cls.return_value.starttls.side_effect = smtplib.SMTPNotSupportedError('STARTTLS extension not supported by server.')
        with pytest.raises(smtplib.SMTPNotSupportedError):
            connect_smtp('mail.example.com', 587)
    smtp_cls.return_value.close.assert_called_once_with()


def test_port_465_uses_implicit_tls():
    with patch.object(smtplib, 'SMTP_SSL') as ssl_cls, patch.object(smtplib, 'SMTP') as smtp_cls:
        assert connect_smtp('mail.example.com', 465) is ssl_cls.return_value
    smtp_cls.assert_not_called()
