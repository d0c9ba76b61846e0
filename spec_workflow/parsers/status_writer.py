"""Utilities for writing task status changes back to tasks.md."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from spec_workflow.parsers.tasks import TASK_LINE_PATTERN, status_marker


def set_task_status(text: str, task_id: str, status: str) -> Optional[str]:
    """Return ``text`` with the checkbox of the first ``task_id`` line set to ``status``.

    Only the marker between the brackets changes; indentation, description and
    every other line are preserved byte for byte. Returns None if no task line
    carries that ID.
    """
    marker = status_marker(status)
    lines = text.splitlines(keepends=True)
    for index, line in enumerate(lines):
        body = line.rstrip("\r\n")
        match = TASK_LINE_PATTERN.match(body)
        if not match or match.group("id") != task_id:
            continue
        start, end = match.span("marker")
        lines[index] = line[:start] + marker + line[end:]
        return "".join(lines)
    return None


def update_task_status(file_path: Path, task_id: str, status: str) -> bool:
    """Update a task's checkbox in a tasks document on disk.

    Returns True if the task was found and written, False otherwise.
    """
    text = file_path.read_text(encoding="utf-8")
    updated = set_task_status(text, task_id, status)
    if updated is None:
        return False
    if updated != text:
        file_path.write_text(updated, encoding="utf-8")
    return True
