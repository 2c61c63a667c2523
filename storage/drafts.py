"""
Draft persistence. Drafts are named by the window's end date (YYYY-MM-DD.md), so sorting
file names also sorts them chronologically.
"""

import os
import re
from pathlib import Path
from typing import Optional

from normalize.models import ActivityWindow

DRAFT_NAME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}\.md$")
HEADING_RANGE_RE = re.compile(r"(\d{4}\.\d{2}\.\d{2})\s*-\s*(\d{4}\.\d{2}\.\d{2})")
PREVIEW_NAME = "preview.html"


def _ensure_dir(drafts_dir: str) -> Path:
    path = Path(drafts_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def save_draft(markdown: str, window: ActivityWindow, drafts_dir: str) -> str:
    """Write the draft for the window, replacing any earlier draft with the same end date."""
    path = _ensure_dir(drafts_dir) / f"{window.end.isoformat()}.md"
    path.write_text(markdown, encoding="utf-8")
    return str(path)


def latest_draft(drafts_dir: str) -> Optional[str]:
    """Path of the newest draft, or None when there is none."""
    if not os.path.isdir(drafts_dir):
        return None
    names = sorted((n for n in os.listdir(drafts_dir) if DRAFT_NAME_RE.match(n)), reverse=True)
    return os.path.join(drafts_dir, names[0]) if names else None


def read_draft(path: str) -> str:
    with open(path, "r", encoding="utf-8") as fh:
        return fh.read()


def window_from_draft(path: str, markdown: str) -> ActivityWindow:
    """Recover the report window from the draft heading; fall back to the file name's date."""
    first_line = markdown.split("\n", 1)[0] if markdown else ""
    match = HEADING_RANGE_RE.search(first_line)
    if match:
        return ActivityWindow.parse(match.group(1).replace(".", "-"), match.group(2).replace(".", "-"))
    stem = Path(path).stem
    return ActivityWindow.parse(stem, stem)


def write_preview(html: str, drafts_dir: str) -> str:
    path = _ensure_dir(drafts_dir) / PREVIEW_NAME
    path.write_text(html, encoding="utf-8")
    return str(path)
