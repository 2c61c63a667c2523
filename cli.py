"""
CLI entry point for weekly-report. Wires the pipeline: collect -> render -> draft -> preview/send
"""

import argparse
import os
import shlex
import smtplib
import subprocess
import webbrowser
from typing import Callable, Optional

import periods
from collector import collect_all
from config import GROUPINGS, Config, ConfigError, load_config
from normalize.models import ActivityWindow
from report.mailer import send_report
from report.renderer import render_html, render_markdown
from storage.drafts import latest_draft, read_draft, save_draft, window_from_draft, write_preview

COMMANDS = ("draft", "preview", "send", "run")


def _confirm(question: str, ask: Callable[[str], str] = input) -> bool:
    return ask(f"{question} [y/N]: ").strip().lower() in ("y", "yes")


def _open_file_in_browser(path: str):
    """Open a file URL in the system default web browser."""
    webbrowser.open("file://" + os.path.abspath(path))


def _resolve_window(args, parser) -> ActivityWindow:
    """Explicit bounds win over a preset, a preset over the interactive menu; default is this week."""
    if bool(args.start) != bool(args.end):
        parser.error("--from and --to must be given together")
    try:
        if args.start:
            return periods.from_bounds(args.start, args.end)
        if args.preset:
            return periods.from_preset(args.preset)
    except ValueError as exc:
        parser.error(str(exc))
    if args.interactive:
        return periods.interactive_window()
    return periods.this_week()


def _require_latest_draft(config: Config) -> Optional[str]:
    path = latest_draft(config.drafts_dir)
    if not path:
        print(f"No draft found in {config.drafts_dir}; run the draft command first")
    return path


def cmd_draft(args, parser, config: Config) -> Optional[str]:
    """Collect activity for the window and write the Markdown draft. Returns the draft path."""
    config.require_collection()
    window = _resolve_window(args, parser)
    print(f"Collecting activity for {window.start.isoformat()} to {window.end.isoformat()}...")

    snapshot = collect_all(config, window)
    markdown = render_markdown(snapshot, config, args.grouping)
    path = save_draft(markdown, window, config.drafts_dir)

    for warning in snapshot.warnings:
        print(f"Warning: {warning}")
    print(f"Draft written to {path}")
    return path


def cmd_preview(args, parser, config: Config) -> int:
    draft_path = _require_latest_draft(config)
    if not draft_path:
        return 1
    html = render_html(read_draft(draft_path), config.mail_template, config.templates_dir)
    preview_path = write_preview(html, config.drafts_dir)
    print(f"Preview written to {preview_path}")
    if not args.no_open:
        try:
            _open_file_in_browser(preview_path)
        except webbrowser.Error:
            print("Failed to open browser automatically; open the file above manually")
    return 0


def cmd_send(args, parser, config: Config, ask: Callable[[str], str] = input) -> int:
    config.require_mail()
    draft_path = _require_latest_draft(config)
    if not draft_path:
        return 1

    markdown = read_draft(draft_path)
    html = render_html(markdown, config.mail_template, config.templates_dir)
    window = window_from_draft(draft_path, markdown)

    if not args.yes and not _confirm(f"Send the report to {', '.join(config.mail_to)}?", ask):
        print("Cancelled")
        return 0
    try:
        send_report(config, html, window)
    except (smtplib.SMTPException, OSError) as exc:
        print(f"Sending failed: {exc}. The draft is kept at {draft_path}")
        return 1
    print("Report sent")
    return 0


def _edit_draft(path: str, ask: Callable[[str], str] = input):
    """Open the draft in $EDITOR (VS Code by default) and wait for it to close."""
    command = shlex.split(os.environ.get("EDITOR") or "code")
    if os.path.basename(command[0]) == "code" and "--wait" not in command:
        command.append("--wait")
    try:
        subprocess.run([*command, path], check=True)
    except (OSError, subprocess.CalledProcessError):
        print(f"Could not launch an editor; edit the draft manually: {path}")
        ask("Press Enter when you are done editing...")


def cmd_run(args, parser, config: Config, ask: Callable[[str], str] = input) -> int:
    """draft -> edit -> confirm -> send"""
    config.require_mail()
    path = cmd_draft(args, parser, config)
    if not path:
        return 1
    _edit_draft(path, ask)
    if not _confirm("Send it now?", ask):
        return 0
    args.yes = True
    return cmd_send(args, parser, config, ask)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="weekly-report", description="Weekly work report from GitLab, Jira and local git")
    parser.add_argument("command", choices=COMMANDS, help="draft: collect and write Markdown; preview: open HTML; send: mail latest draft; run: draft, edit, send")
    parser.add_argument("--from", dest="start", type=str, default=None, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--to", dest="end", type=str, default=None, help="End date (YYYY-MM-DD)")
    parser.add_argument("--preset", choices=periods.PRESETS, default=None, help="Named window instead of explicit dates")
    parser.add_argument("-i", "--interactive", action="store_true", help="Choose the window from a menu")
    parser.add_argument("--grouping", choices=GROUPINGS, default=None, help="Completed-work grouping (overrides REPORT_GROUPING)")
    parser.add_argument("--env-file", type=str, default=None, help="Path to the .env file (default: ./.env)")
    parser.add_argument("--yes", action="store_true", help="Send without asking for confirmation")
    parser.add_argument("--no-open", action="store_true", help="Write the preview without opening a browser")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.env_file)
        if args.command == "draft":
            return 0 if cmd_draft(args, parser, config) else 1
        if args.command == "preview":
            return cmd_preview(args, parser, config)
        if args.command == "send":
            return cmd_send(args, parser, config)
        return cmd_run(args, parser, config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
