"""Task tool handlers over a spec's tasks.md."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from spec_workflow.i18n import Formatter, translate
from spec_workflow.models import TaskParseResult, ToolResponse
from spec_workflow.parsers.status_writer import update_task_status
from spec_workflow.parsers.tasks import find_next_pending, find_task, parse_tasks
from spec_workflow.paths import get_spec_path, is_valid_spec_name
from spec_workflow.services.common import failure, project_context, unexpected_failure

_TASK_STATUSES = ("pending", "in-progress", "completed")


def _tasks_path(project_path: Path | str, spec_name: str) -> Path:
    return get_spec_path(project_path, spec_name) / "tasks.md"


def _load(project_path: Path | str, spec_name: str) -> Optional[TaskParseResult]:
    """Parse tasks.md, or None when the spec has no tasks document yet."""
    try:
        text = _tasks_path(project_path, spec_name).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    return parse_tasks(text)


def _missing_tasks(spec_name: str, lang: Optional[str], fmt: Formatter) -> ToolResponse:
    return failure(
        fmt("tasks.noTasksFile", lang, specName=spec_name),
        [fmt("tasks.nextSteps.create", lang)],
    )


def _unknown_spec(spec_name: str, lang: Optional[str], fmt: Formatter) -> ToolResponse:
    return failure(
        fmt("specs.notFound", lang, specName=spec_name),
        [fmt("specs.nextSteps.checkName", lang), fmt("specs.nextSteps.useList", lang)],
    )


def _task_not_found(task_id: str, lang: Optional[str], fmt: Formatter) -> ToolResponse:
    return failure(
        fmt("tasks.taskNotFound", lang, taskId=task_id),
        [fmt("tasks.nextSteps.list", lang)],
    )


def list_tasks(
    project_path: Path | str,
    spec_name: str,
    *,
    lang: Optional[str] = None,
    fmt: Formatter = translate,
) -> ToolResponse:
    if not is_valid_spec_name(spec_name):
        return _unknown_spec(spec_name, lang, fmt)
    try:
        result = _load(project_path, spec_name)
    except Exception as exc:
        return unexpected_failure(fmt, lang, "tasks.failed", exc)
    if result is None:
        return _missing_tasks(spec_name, lang, fmt)
    if not result.tasks:
        return ToolResponse(
            success=True,
            message=fmt("tasks.empty", lang),
            data={"tasks": [], "skippedLines": result.skippedLines},
            nextSteps=[fmt("tasks.nextSteps.create", lang)],
        )

    summary = result.summary
    return ToolResponse(
        success=True,
        message=fmt(
            "tasks.list.success",
            lang,
            total=summary.total,
            completed=summary.completed,
            inProgress=summary.inProgress,
            pending=summary.pending,
        ),
        data=result.model_dump(),
        nextSteps=[
            fmt("tasks.nextSteps.nextPending", lang),
            fmt("tasks.nextSteps.setStatus", lang),
        ],
        projectContext=project_context(project_path, spec_name, "implementation"),
    )


def get_task(
    project_path: Path | str,
    spec_name: str,
    task_id: str,
    *,
    lang: Optional[str] = None,
    fmt: Formatter = translate,
) -> ToolResponse:
    if not is_valid_spec_name(spec_name):
        return _unknown_spec(spec_name, lang, fmt)
    try:
        result = _load(project_path, spec_name)
    except Exception as exc:
        return unexpected_failure(fmt, lang, "tasks.failed", exc)
    if result is None:
        return _missing_tasks(spec_name, lang, fmt)

    task = find_task(result.tasks, task_id)
    if task is None:
        return _task_not_found(task_id, lang, fmt)

    return ToolResponse(
        success=True,
        message=fmt("tasks.get.success", lang, taskId=task.id, description=task.description),
        data={"task": task.model_dump()},
        nextSteps=[fmt(f"tasks.get.nextSteps.{task.status}", lang, taskId=task.id)],
        projectContext=project_context(project_path, spec_name, "implementation"),
    )


def next_pending_task(
    project_path: Path | str,
    spec_name: str,
    *,
    lang: Optional[str] = None,
    fmt: Formatter = translate,
) -> ToolResponse:
    if not is_valid_spec_name(spec_name):
        return _unknown_spec(spec_name, lang, fmt)
    try:
        result = _load(project_path, spec_name)
    except Exception as exc:
        return unexpected_failure(fmt, lang, "tasks.failed", exc)
    if result is None:
        return _missing_tasks(spec_name, lang, fmt)

    task = find_next_pending(result.tasks)
    if task is not None:
        return ToolResponse(
            success=True,
            message=fmt("tasks.next.found", lang, taskId=task.id, description=task.description),
            data={"nextTask": task.model_dump()},
            nextSteps=[fmt("tasks.nextSteps.startTask", lang, taskId=task.id)],
            projectContext=project_context(project_path, spec_name, "implementation"),
        )

    in_progress = [t for t in result.tasks if t.status == "in-progress"]
    if in_progress:
        ids = ", ".join(t.id for t in in_progress)
        return ToolResponse(
            success=True,
            message=fmt("tasks.next.inProgress", lang, count=len(in_progress)),
            data={"nextTask": None, "inProgressTasks": [t.model_dump() for t in in_progress]},
            nextSteps=[fmt("tasks.nextSteps.finishInProgress", lang, ids=ids)],
            projectContext=project_context(project_path, spec_name, "implementation"),
        )

    return ToolResponse(
        success=True,
        message=fmt("tasks.next.allDone", lang),
        data={"nextTask": None},
        nextSteps=[fmt("tasks.nextSteps.runTests", lang)],
        projectContext=project_context(project_path, spec_name, "completed"),
    )


def set_task_status(
    project_path: Path | str,
    spec_name: str,
    task_id: str,
    status: str,
    *,
    lang: Optional[str] = None,
    fmt: Formatter = translate,
) -> ToolResponse:
    if not is_valid_spec_name(spec_name):
        return _unknown_spec(spec_name, lang, fmt)
    if status not in _TASK_STATUSES:
        return failure(fmt("tasks.setStatus.invalidStatus", lang, status=status))

    try:
        result = _load(project_path, spec_name)
        if result is None:
            return _missing_tasks(spec_name, lang, fmt)
        task = find_task(result.tasks, task_id)
        if task is None:
            return _task_not_found(task_id, lang, fmt)
        if not update_task_status(_tasks_path(project_path, spec_name), task_id, status):
            return _task_not_found(task_id, lang, fmt)
    except Exception as exc:
        return unexpected_failure(fmt, lang, "tasks.failed", exc)

    next_step_key = {
        "in-progress": "tasks.setStatus.nextSteps.begin",
        "completed": "tasks.nextSteps.nextPending",
        "pending": "tasks.setStatus.nextSteps.pending",
    }[status]
    return ToolResponse(
        success=True,
        message=fmt("tasks.setStatus.success", lang, taskId=task_id, status=status),
        data={
            "taskId": task_id,
            "previousStatus": task.status,
            "newStatus": status,
            "updatedTask": task.model_copy(update={"status": status}).model_dump(),
        },
        nextSteps=[fmt(next_step_key, lang)],
        projectContext=project_context(project_path, spec_name, "implementation"),
    )
