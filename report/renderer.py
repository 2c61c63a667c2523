"""
Report renderer: Markdown drafts from an ActivitySnapshot, and email-ready HTML from Markdown.
HTML goes through markdown2, gets inline styles (mail clients drop stylesheets), and is placed
into a Jinja2 template from the templates directory when one is available.
"""

import os
import random
import re
from typing import Dict, List, Optional

import markdown2
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape
from markupsafe import Markup

from correlate.linker import find_issue_keys_in_text, keys_for_item, link_keys_to_issues
from correlate.models import WorkItemDetail
from normalize.models import ActivitySnapshot, TrackedIssue, WorkItem

FOOTER = 'Powered by <a href="https://github.com/Creabine/weekly-report" target="_blank">weekly-report</a>'
NOTES_PLACEHOLDER = "<!-- Add anything else here: next week's plan, blockers, items that need coordination -->"
RANDOM_TEMPLATE = "random"

STATE_EMOJI = {"merged": "✅", "opened": "🔵", "open": "🔵", "closed": "🔴"}

UL_STYLE = "padding-left:0;margin:8px 0;list-style:none;"
LI_STYLE = (
    "position:relative;padding:8px 12px 8px 24px;margin-bottom:4px;background:#f8f9fb;border-radius:6px;"
    "font-size:13.5px;line-height:1.6;color:#374151;list-style:none;"
)
LI_MARKER = '<span style="position:absolute;left:10px;color:#667eea;font-size:12px;">▸</span>'
TABLE_STYLE = "border-collapse:collapse;width:100%;margin:8px 0;font-size:13.5px;"
CELL_STYLE = "border:1px solid #e5e7eb;padding:6px 10px;text-align:left;"

MARKDOWN_EXTRAS = ["tables", "fenced-code-blocks", "strike", "cuddled-lists"]


def state_emoji(state: str) -> str:
    return STATE_EMOJI.get(state, "⬜")


def _state_label(item: WorkItem) -> str:
    label = f"{state_emoji(item.state)} {item.state[:1].upper()}{item.state[1:]}"
    return f"{label} (draft)" if item.draft else label


def _cell(text: str) -> str:
    return (text or "").replace("|", "\\|").replace("\n", " ")


def _stage_suffix(detail: WorkItemDetail) -> str:
    hotfix = " [hotfix]" if detail.is_hotfix else ""
    return f"({detail.stage}){hotfix}"


def _detail_keys(detail: WorkItemDetail) -> List[str]:
    keys = keys_for_item(detail.item)
    for commit in detail.commits:
        keys.extend(k for k in find_issue_keys_in_text(commit.message) if k not in keys)
    return keys


def _work_item_section(snapshot: ActivitySnapshot, jira_url) -> List[str]:
    lines: List[str] = []
    for detail in snapshot.details:
        keys = keys_for_item(detail.item)
        if keys:
            lines.append(f"### [{keys[0]}]({jira_url(keys[0])}) {detail.item.title} {_stage_suffix(detail)}")
        else:
            lines.append(f"### {detail.item.title} {_stage_suffix(detail)}")
        for commit in detail.commits:
            lines.append(f"- {commit.message}")
        lines.append("")
    return lines


def _commit_section(snapshot: ActivitySnapshot, jira_url) -> List[str]:
    lines: List[str] = []
    for detail in snapshot.details:
        for commit in detail.commits:
            lines.append(f"- {commit.message} {_stage_suffix(detail)}")
    lines.append("")
    return lines


def _issue_line(issue: TrackedIssue, jira_url, stages: Dict[str, str]) -> str:
    status = issue.status
    if issue.key in stages:
        status = f"{status}; {stages[issue.key]}" if status else stages[issue.key]
    suffix = f" ({status})" if status else ""
    return f"- [{issue.key}]({jira_url(issue.key)}) {issue.summary}{suffix}"


def _category_section(snapshot: ActivitySnapshot, jira_url) -> List[str]:
    stages: Dict[str, str] = {}
    untracked: List[WorkItemDetail] = []
    for detail in snapshot.details:
        linked = link_keys_to_issues(_detail_keys(detail), snapshot.issues)
        if not linked:
            untracked.append(detail)
        for issue in linked:
            stages.setdefault(issue.key, detail.stage)

    ordered = sorted(snapshot.issues, key=lambda iss: iss.key)
    features = [iss for iss in ordered if iss.category == "feature"]
    bugs = [iss for iss in ordered if iss.category == "bug"]

    lines: List[str] = []
    for heading, group in (("Features", features), ("Bug Fixes", bugs)):
        if not group:
            continue
        lines.append(f"### {heading}")
        lines.extend(_issue_line(iss, jira_url, stages) for iss in group)
        lines.append("")
    if untracked:
        lines.append("### Other")
        lines.extend(f"- {d.item.title} {_stage_suffix(d)}" for d in untracked)
        lines.append("")
    return lines


SECTIONS = {
    "work_item": _work_item_section,
    "commit": _commit_section,
    "category": _category_section,
}


def render_markdown(snapshot: ActivitySnapshot, config, grouping: Optional[str] = None) -> str:
    """Render the weekly draft. Same snapshot and config always give the same text."""
    grouping = grouping or getattr(config, "grouping", "work_item")
    if grouping not in SECTIONS:
        raise ValueError(f"Unknown grouping '{grouping}'; expected one of {', '.join(SECTIONS)}")
    jira_url = config.jira_browse_url

    md: List[str] = [f"# Weekly Report {snapshot.window.display()}", ""]

    md.append("## Completed This Week")
    md.append("")
    body = SECTIONS[grouping](snapshot, jira_url) if snapshot.details or (grouping == "category" and snapshot.issues) else []
    if any(line.strip() for line in body):
        md.extend(body)
    else:
        md.append("_No merge requests this week_")
        md.append("")

    if snapshot.items:
        md.append("## Merge Requests")
        md.append("| MR | Status | Target Branch |")
        md.append("|----|--------|---------------|")
        for item in snapshot.items:
            md.append(f"| [{_cell(item.title)}]({item.url}) | {_state_label(item)} | {_cell(item.target_branch)} |")
        md.append("")

    repos = [r for r in snapshot.repos if r.commits]
    if repos:
        md.append("## Local Commits")
        md.append("| Repository | Commits |")
        md.append("|------------|---------|")
        for repo in sorted(repos, key=lambda r: r.name):
            md.append(f"| {_cell(repo.name)} | {len(repo.commits)} |")
        md.append("")

    md.append("## Notes")
    md.append(NOTES_PLACEHOLDER)
    md.append("")
    return "\n".join(md)


def _force_blank_targets(html: str) -> str:
    return re.sub(r"<a (?![^>]*\btarget=)", '<a target="_blank" ', html)


def _inline_styles(html: str) -> str:
    html = html.replace("<ul>", f'<ul style="{UL_STYLE}">')
    html = html.replace("<li>", f'<li style="{LI_STYLE}">{LI_MARKER}')
    html = html.replace("<table>", f'<table style="{TABLE_STYLE}">')
    html = re.sub(r"<(th|td)>", lambda m: f'<{m.group(1)} style="{CELL_STYLE}">', html)
    return html


def markdown_to_html(markdown: str) -> str:
    """Convert Markdown to an HTML fragment with new-window links and inline list/table styling."""
    html = markdown2.markdown(markdown, extras=MARKDOWN_EXTRAS)
    return _inline_styles(_force_blank_targets(str(html)))


def list_templates(templates_dir: Optional[str]) -> List[str]:
    if not templates_dir or not os.path.isdir(templates_dir):
        return []
    return sorted(name[: -len(".html")] for name in os.listdir(templates_dir) if name.endswith(".html"))


def choose_template(template_name: Optional[str], templates_dir: Optional[str], rng: Optional[random.Random] = None) -> Optional[str]:
    """Resolve the template name to use, or None when no template is available."""
    available = list_templates(templates_dir)
    if not available:
        return None
    if not template_name or template_name == RANDOM_TEMPLATE:
        return (rng or random).choice(available)
    return template_name if template_name in available else None


def render_html_fallback(body: str) -> str:
    """Minimal inline-styled document used when no template directory or template exists."""
    return (
        "<!DOCTYPE html>\n"
        "<html>\n"
        '<head><meta charset="utf-8"></head>\n'
        "<body style=\"font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; "
        'max-width: 800px; margin: 0 auto; padding: 20px; color: #333;">\n'
        f"{body}\n"
        f'<footer style="color: #999; font-size: 12px; padding-top: 15px;">{FOOTER}</footer>\n'
        "</body>\n"
        "</html>"
    )


def render_html(markdown: str, template_name: Optional[str] = None, templates_dir: Optional[str] = None, rng: Optional[random.Random] = None) -> str:
    """Render the draft Markdown into a complete HTML email body."""
    body = markdown_to_html(markdown)
    chosen = choose_template(template_name, templates_dir, rng)
    if chosen is None:
        return render_html_fallback(body)
    env = Environment(loader=FileSystemLoader(templates_dir), autoescape=select_autoescape(["html", "xml"]))
    try:
        tmpl = env.get_template(f"{chosen}.html")
    except TemplateNotFound:
        return render_html_fallback(body)
    return tmpl.render(content=Markup(body), footer=Markup(FOOTER))
