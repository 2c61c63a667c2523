"""
Report window selection: explicit bounds, named presets, or an interactive menu.
"""

import re
from datetime import date, timedelta
from typing import Callable, Optional

from normalize.models import ActivityWindow

PRESETS = ("this-week", "last-week")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def monday_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


def this_week(today: Optional[date] = None) -> ActivityWindow:
    """Monday of the current week through today."""
    today = today or date.today()
    return ActivityWindow(monday_of(today), today)


def last_week(today: Optional[date] = None) -> ActivityWindow:
    """Previous Monday through previous Friday."""
    today = today or date.today()
    start = monday_of(today) - timedelta(days=7)
    return ActivityWindow(start, start + timedelta(days=4))


def from_preset(name: str, today: Optional[date] = None) -> ActivityWindow:
    if name == "this-week":
        return this_week(today)
    if name == "last-week":
        return last_week(today)
    raise ValueError(f"Unknown preset '{name}'; expected one of {', '.join(PRESETS)}")


def from_bounds(start: str, end: str) -> ActivityWindow:
    for value in (start, end):
        if not DATE_RE.match(value or ""):
            raise ValueError(f"Invalid date '{value}'; expected YYYY-MM-DD")
    return ActivityWindow.parse(start, end)


def interactive_window(ask: Callable[[str], str] = input, today: Optional[date] = None) -> ActivityWindow:
    """Prompt for a window. Unrecognized answers and malformed dates fall back to this week."""
    print("Select the report window:")
    print("  1) This week (Monday to today)")
    print("  2) Last week (Monday to Friday)")
    print("  3) Custom range")
    choice = ask("> ").strip()
    if choice == "2":
        return last_week(today)
    if choice == "3":
        start = ask("Start date (YYYY-MM-DD): ").strip()
        end = ask("End date (YYYY-MM-DD): ").strip()
        try:
            return from_bounds(start, end)
        except ValueError as exc:
            print(f"{exc}; using this week instead")
    return this_week(today)
