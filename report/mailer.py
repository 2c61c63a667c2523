"""
SMTP delivery for the weekly report, with optional threading across weeks.
"""

import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid

from config import Config
from log_config import get_logger
from normalize.models import ActivityWindow
from storage.thread_state import ThreadState, load_thread_state, save_thread_state

logger = get_logger(__name__)


def build_subject(template: str, author: str, window: ActivityWindow) -> str:
    return template.replace("{author}", author).replace("{dateRange}", window.dotted_range())


def html_to_plaintext(html: str) -> str:
    """Rough text rendition for the plain alternative part."""
    text = re.sub(r"<style[^>]*>.*?</style>", "", html, flags=re.DOTALL)
    text = re.sub(r"<!--.*?-->", "", text, flags=re.DOTALL)
    text = re.sub(r"<br\s*/?>", "\n", text)
    text = re.sub(r"</(p|h[1-6]|li|tr|div)>", "\n", text)
    text = re.sub(r"<[^>]+>", "", text)
    for entity, char in (("&nbsp;", " "), ("&lt;", "<"), ("&gt;", ">"), ("&quot;", '"'), ("&#39;", "'"), ("&amp;", "&")):
        text = text.replace(entity, char)
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n\s*\n+", "\n\n", text)
    return text.strip()


def _sender_domain(address: str) -> str:
    return address.split("@", 1)[1] if "@" in address else "localhost"


def build_message(config: Config, subject: str, html: str, thread: ThreadState) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = config.smtp_user
    msg["To"] = ", ".join(config.mail_to)
    if config.mail_cc:
        msg["Cc"] = ", ".join(config.mail_cc)
    msg["Date"] = formatdate(localtime=True)
    msg["Message-ID"] = make_msgid(domain=_sender_domain(config.smtp_user))
    for name, value in thread.reply_headers().items():
        msg[name] = value
    msg.attach(MIMEText(html_to_plaintext(html), "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


def connect_smtp(host: str, port: int):
    """Implicit TLS on 465, STARTTLS everywhere else."""
    if port == 465:
        return smtplib.SMTP_SSL(host, port)
    server = smtplib.SMTP(host, port)
    try:
        server.starttls()
    except (smtplib.SMTPException, OSError):
        server.close()
        raise
    return server


def send_report(config: Config, html: str, window: ActivityWindow, connect=connect_smtp) -> str:
    """
    Send the rendered report and return the Message-ID used.

    Credentials and recipients are checked before any connection is opened. With threading
    enabled the previous Message-ID is replied to and the new one is persisted afterwards;
    with threading disabled the state file is neither read nor written.
    """
    config.require_mail()

    subject = build_subject(config.subject_template, config.author_name, window)
    thread = load_thread_state(config.thread_state_file) if config.mail_thread else ThreadState()
    msg = build_message(config, subject, html, thread)
    recipients = config.mail_to + config.mail_cc

    logger.info("Sending '%s' to %s", subject, ", ".join(config.mail_to))
    with connect(config.smtp_host, config.smtp_port) as server:
        server.login(config.smtp_user, config.smtp_pass)
        server.send_message(msg, from_addr=config.smtp_user, to_addrs=recipients)

    message_id = msg["Message-ID"]
    if config.mail_thread:
        try:
            save_thread_state(config.thread_state_file, thread.advance(message_id))
        except OSError as exc:
            logger.warning("Report sent but the thread state could not be saved to %s: %s", config.thread_state_file, exc)
    logger.info("Sent %s", message_id)
    return message_id
