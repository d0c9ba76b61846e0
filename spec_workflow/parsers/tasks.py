"""Parse tasks.md checkbox lists into Task models.

Task lines look like ``- [ ] 1.2 Description``. The checkbox marker encodes
status: blank is pending, ``-`` is in-progress, ``x`` is completed. Indented
lines that follow a task are folded into it, with ``_Requirements: ..._`` and
``_Leverage: ..._`` lines lifted into their own fields. Detail lines are
stored trimmed with their leading list bullet removed, so renderers can add
their own.
"""
from __future__ import annotations

import re
from typing import Iterable, Optional

from spec_workflow.models import Task, TaskParseResult, TaskSummary

# Checkbox line with an identifier, e.g. "- [x] 2.1. Wire the store"
TASK_LINE_PATTERN = re.compile(
    r"^(?P<indent>\s*)[-*+]\s*\[(?P<marker>[^\]]*)\]\s*"
    r"(?P<id>[A-Za-z]*\d+(?:\.[0-9A-Za-z]+)*)\.?\s+(?P<description>\S.*)$"
)
# Anything that looks like a checkbox; used to spot malformed task lines
_CHECKBOX_PATTERN = re.compile(r"^\s*[-*+]\s*\[[^\]]*\]")
_REQUIREMENTS_PATTERN = re.compile(r"_Requirements:\s*(.+?)(?:_\s*$|$)")
_LEVERAGE_PATTERN = re.compile(r"_Leverage:\s*(.+?)(?:_\s*$|$)")
_BULLET_PREFIX = re.compile(r"^[-*+]\s+")

_MARKER_STATUS = {
    "": "pending",
    "-": "in-progress",
    "x": "completed",
}
_STATUS_MARKER = {
    "pending": " ",
    "in-progress": "-",
    "completed": "x",
}


def _marker_status(raw: str) -> Optional[str]:
    return _MARKER_STATUS.get(raw.strip().lower())


def _is_indented(line: str) -> bool:
    return line.startswith((" ", "\t"))


def summarize(tasks: Iterable[Task]) -> TaskSummary:
    summary = TaskSummary()
    for task in tasks:
        summary.total += 1
        if task.status == "completed":
            summary.completed += 1
        elif task.status == "in-progress":
            summary.inProgress += 1
        else:
            summary.pending += 1
    return summary


def parse_tasks(text: str) -> TaskParseResult:
    """Parse the raw text of a tasks document.

    Pure function: no filesystem access, identical input gives identical output.
    Task IDs are taken verbatim and duplicates are kept in document order.
    Checkbox lines with an unknown marker or no ID are skipped and their
    1-based line numbers reported in ``skippedLines``.
    """
    tasks: list[Task] = []
    skipped: list[int] = []
    current: Optional[Task] = None

    for lineno, line in enumerate((text or "").splitlines(), start=1):
        stripped = line.strip()
        match = TASK_LINE_PATTERN.match(line)

        if match:
            status = _marker_status(match.group("marker"))
            if status is None:
                skipped.append(lineno)
                current = None
                continue
            current = Task(
                id=match.group("id"),
                description=match.group("description").strip(),
                status=status,
            )
            tasks.append(current)
            continue

        if _CHECKBOX_PATTERN.match(line) and not _is_indented(line):
            skipped.append(lineno)
            current = None
            continue

        if current is None or not stripped:
            continue

        if not _is_indented(line):
            # Headings and prose end the task block
            current = None
            continue

        requirements = _REQUIREMENTS_PATTERN.search(stripped)
        if requirements:
            current.requirements = requirements.group(1).strip()
            continue
        leverage = _LEVERAGE_PATTERN.search(stripped)
        if leverage:
            current.leverage = leverage.group(1).strip()
            continue

        detail = _BULLET_PREFIX.sub("", stripped).strip()
        if detail and not detail.startswith("_"):
            current.details.append(detail)

    return TaskParseResult(tasks=tasks, summary=summarize(tasks), skippedLines=skipped)


def find_task(tasks: Iterable[Task], task_id: str) -> Optional[Task]:
    for task in tasks:
        if task.id == task_id:
            return task
    return None


def find_next_pending(tasks: Iterable[Task]) -> Optional[Task]:
    for task in tasks:
        if task.status == "pending":
            return task
    return None


def status_marker(status: str) -> str:
    try:
        return _STATUS_MARKER[status]
    except KeyError:
        raise ValueError(f"Unknown task status: {status}") from None
