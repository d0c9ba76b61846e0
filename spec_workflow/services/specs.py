"""Spec tool handlers: status, listing and document creation."""
from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any, Optional

from spec_workflow import config
from spec_workflow.db.approval_storage import ApprovalStorage
from spec_workflow.i18n import Formatter, translate
from spec_workflow.models import PhaseStatus, SpecData, ToolResponse
from spec_workflow.parsers.specs import (
    SpecDocumentWriter,
    SpecParser,
    WorkflowOrderError,
    derive_workflow_status,
)
from spec_workflow.paths import is_valid_spec_name, to_posix
from spec_workflow.services.common import failure, project_context, unexpected_failure


def _phase_label(phase: PhaseStatus) -> str:
    if not phase.exists:
        return "missing"
    return "approved" if phase.approved else "created"


def _phase_details(spec: SpecData) -> list[dict[str, Any]]:
    details: list[dict[str, Any]] = [
        {
            "name": document,
            "status": _phase_label(getattr(spec.phases, document)),
            "lastModified": getattr(spec.phases, document).lastModified,
        }
        for document in config.PHASE_DOCUMENTS
    ]
    details.append(
        {
            "name": "implementation",
            "status": "in-progress" if spec.phases.implementation.exists else "not-started",
            "progress": spec.taskProgress.model_dump() if spec.taskProgress else None,
        }
    )
    return details


def _status_next_steps(current_phase: str, spec: SpecData, lang: Optional[str], fmt: Formatter) -> list[str]:
    if current_phase in config.PHASE_DOCUMENTS:
        return [
            fmt(f"specs.status.nextSteps.{current_phase}", lang),
            fmt("specs.status.nextSteps.requestApproval", lang),
        ]
    if current_phase == "completed":
        return [fmt("specs.status.nextSteps.completed", lang), fmt("tasks.nextSteps.runTests", lang)]
    if spec.taskProgress and spec.taskProgress.pending > 0:
        return [fmt("tasks.nextSteps.nextPending", lang), fmt("tasks.nextSteps.setStatus", lang)]
    return [fmt("specs.status.nextSteps.beginImplementation", lang)]


def _load_specs(project_path: Path | str, spec_name: Optional[str] = None):
    with ApprovalStorage(project_path) as store:
        parser = SpecParser(project_path, approvals=store)
        if spec_name is None:
            return parser.get_all_specs()
        return parser.get_spec(spec_name)


def spec_status(
    project_path: Path | str,
    spec_name: str,
    *,
    lang: Optional[str] = None,
    fmt: Formatter = translate,
) -> ToolResponse:
    try:
        spec = _load_specs(project_path, spec_name)
    except Exception as exc:
        return unexpected_failure(fmt, lang, "specs.status.failed", exc)

    if spec is None:
        return failure(
            fmt("specs.notFound", lang, specName=spec_name),
            [fmt("specs.nextSteps.checkName", lang), fmt("specs.nextSteps.useList", lang)],
        )

    current_phase, overall_status = derive_workflow_status(spec)
    progress = spec.taskProgress.model_dump() if spec.taskProgress else {"total": 0, "completed": 0, "pending": 0}
    return ToolResponse(
        success=True,
        message=fmt("specs.status.success", lang, specName=spec_name, status=overall_status),
        data={
            "name": spec.name,
            "displayName": spec.displayName,
            "description": spec.description,
            "currentPhase": current_phase,
            "overallStatus": overall_status,
            "createdAt": spec.createdAt,
            "lastModified": spec.lastModified,
            "phases": _phase_details(spec),
            "taskProgress": progress,
            "readErrors": [error.model_dump() for error in spec.readErrors],
        },
        nextSteps=_status_next_steps(current_phase, spec, lang, fmt),
        projectContext=project_context(project_path, spec_name, current_phase),
    )


def spec_list(
    project_path: Path | str,
    *,
    lang: Optional[str] = None,
    fmt: Formatter = translate,
) -> ToolResponse:
    try:
        specs = _load_specs(project_path)
    except Exception as exc:
        return unexpected_failure(fmt, lang, "specs.list.failed", exc)

    if not specs:
        return ToolResponse(
            success=True,
            message=fmt("specs.list.none", lang),
            data={"specs": [], "total": 0},
            nextSteps=[fmt("specs.list.nextSteps.create", lang)],
            projectContext=project_context(project_path),
        )

    rows = []
    for spec in specs:
        _, overall_status = derive_workflow_status(spec)
        rows.append(
            {
                "name": spec.name,
                "displayName": spec.displayName,
                "status": overall_status,
                "phases": {
                    "requirements": spec.phases.requirements.exists,
                    "design": spec.phases.design.exists,
                    "tasks": spec.phases.tasks.exists,
                    "implementation": spec.phases.implementation.exists,
                },
                "taskProgress": spec.taskProgress.model_dump() if spec.taskProgress else None,
                "lastModified": spec.lastModified,
                "createdAt": spec.createdAt,
            }
        )

    return ToolResponse(
        success=True,
        message=fmt("specs.list.success", lang, count=len(rows)),
        data={
            "specs": rows,
            "total": len(rows),
            "summary": {
                "byStatus": dict(Counter(row["status"] for row in rows)),
                "totalTasks": sum(s.taskProgress.total for s in specs if s.taskProgress),
                "completedTasks": sum(s.taskProgress.completed for s in specs if s.taskProgress),
            },
        },
        nextSteps=[fmt("specs.list.nextSteps.viewStatus", lang), fmt("specs.list.nextSteps.create", lang)],
        projectContext=project_context(project_path),
    )


def create_spec_document(
    project_path: Path | str,
    spec_name: str,
    document: str,
    content: str,
    *,
    lang: Optional[str] = None,
    fmt: Formatter = translate,
) -> ToolResponse:
    if not is_valid_spec_name(spec_name):
        return failure(fmt("specs.create.invalidName", lang, specName=spec_name))
    if document not in config.PHASE_DOCUMENTS:
        return failure(fmt("specs.create.invalidDocument", lang, document=document))

    try:
        path = SpecDocumentWriter(project_path).write(spec_name, document, content)
    except WorkflowOrderError as exc:
        return failure(
            fmt("specs.create.workflowViolation", lang, document=exc.document, missing=exc.missing),
            [fmt(f"specs.status.nextSteps.{exc.missing}", lang)],
        )
    except Exception as exc:
        return unexpected_failure(fmt, lang, "specs.create.failed", exc)

    file_path = to_posix(str(path))
    return ToolResponse(
        success=True,
        message=fmt("specs.create.success", lang, document=document, filePath=file_path),
        data={"specName": spec_name, "document": document, "filePath": file_path},
        nextSteps=[fmt("specs.status.nextSteps.requestApproval", lang)],
        projectContext=project_context(project_path, spec_name, document),
    )


def create_steering_document(
    project_path: Path | str,
    document: str,
    content: str,
    *,
    lang: Optional[str] = None,
    fmt: Formatter = translate,
) -> ToolResponse:
    if document not in config.STEERING_DOCUMENTS:
        return failure(fmt("specs.create.invalidDocument", lang, document=document))

    try:
        path = SpecDocumentWriter(project_path).write_steering(document, content)
    except Exception as exc:
        return unexpected_failure(fmt, lang, "specs.create.failed", exc)

    file_path = to_posix(str(path))
    return ToolResponse(
        success=True,
        message=fmt("specs.create.success", lang, document=document, filePath=file_path),
        data={"document": document, "filePath": file_path},
        nextSteps=[fmt("specs.status.nextSteps.requestApproval", lang)],
        projectContext=project_context(project_path),
    )
