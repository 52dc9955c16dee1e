"""Shape task snapshots for the kanban, gantt and calendar pages."""

from calendar import Calendar
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from models.task_models import Task

# Months whose grid and prev/next links stay inside the date range
MIN_YEAR = 2
MAX_YEAR = 9998


def flatten(tasks: Iterable[Task]) -> List[Dict[str, Any]]:
    """Tasks followed by their subtasks, each tagged with depth and parent text."""
    rows = []
    for task in tasks:
        rows.append({"task": task, "depth": 0, "parent": None})
        for subtask in task.subtasks:
            rows.append({"task": subtask, "depth": 1, "parent": task.text})
    return rows


def kanban_columns(tasks: Iterable[Task], now: datetime) -> Dict[str, List[Task]]:
    """Split top-level tasks into todo / overdue / done."""
    columns: Dict[str, List[Task]] = {"todo": [], "overdue": [], "done": []}
    for task in tasks:
        if task.is_complete:
            columns["done"].append(task)
        elif task.due_at is not None and task.due_at < now:
            columns["overdue"].append(task)
        else:
            columns["todo"].append(task)
    return columns


def gantt_rows(tasks: Iterable[Task], now: datetime) -> Dict[str, Any]:
    """Bars from creation to due time, positioned as percentages of the window.

    Tasks without a due date are left out.
    """
    rows = [r for r in flatten(tasks) if r["task"].due_at is not None]
    if not rows:
        return {"rows": [], "start": None, "end": None, "now_pct": None}

    start = min(r["task"].created_at for r in rows)
    end = max(max(r["task"].due_at for r in rows), now)
    span = (end - start).total_seconds() or 1.0

    for r in rows:
        task = r["task"]
        r["offset_pct"] = round((task.created_at - start).total_seconds() / span * 100, 2)
        r["width_pct"] = max(round((task.due_at - task.created_at).total_seconds() / span * 100, 2), 0.5)
        r["overdue"] = not task.is_complete and task.due_at < now

    now_pct = round(min(max((now - start).total_seconds() / span, 0.0), 1.0) * 100, 2)
    return {"rows": rows, "start": start, "end": end, "now_pct": now_pct}


def calendar_month(tasks: Iterable[Task], year: int, month: int) -> Dict[str, Any]:
    """Weeks of the month (Monday first), each day holding the tasks due on it."""
    due_by_day: Dict[date, List[Task]] = {}
    for r in flatten(tasks):
        task = r["task"]
        if task.due_at is not None:
            due_by_day.setdefault(task.due_at.date(), []).append(task)

    weeks: List[List[Optional[Dict[str, Any]]]] = []
    for week in Calendar(firstweekday=0).monthdatescalendar(year, month):
        days: List[Optional[Dict[str, Any]]] = []
        for day in week:
            if day.month != month:
                days.append(None)
            else:
                days.append({"date": day, "tasks": due_by_day.get(day, [])})
        weeks.append(days)

    first = date(year, month, 1)
    prev_year, prev_month = (year, month - 1) if month > 1 else (year - 1, 12)
    next_year, next_month = (year, month + 1) if month < 12 else (year + 1, 1)
    return {
        "year": year,
        "month": month,
        "title": first.strftime("%B %Y"),
        "weeks": weeks,
        "prev": {"year": prev_year, "month": prev_month},
        "next": {"year": next_year, "month": next_month},
    }
