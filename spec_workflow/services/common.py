"""Helpers shared by the tool service handlers."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from spec_workflow.i18n import Formatter
from spec_workflow.models import ProjectContext, ToolResponse
from spec_workflow.paths import get_workflow_root, to_posix

logger = logging.getLogger("spec_workflow.services")


def project_context(
    project_path: Path | str,
    spec_name: Optional[str] = None,
    current_phase: Optional[str] = None,
) -> ProjectContext:
    return ProjectContext(
        projectPath=to_posix(str(project_path)),
        workflowRoot=to_posix(str(get_workflow_root(project_path))),
        specName=spec_name,
        currentPhase=current_phase,
    )


def failure(message: str, next_steps: Optional[list[str]] = None, data: Optional[dict[str, Any]] = None) -> ToolResponse:
    return ToolResponse(success=False, message=message, data=data, nextSteps=next_steps or [])


def unexpected_failure(fmt: Formatter, lang: Optional[str], key: str, exc: Exception) -> ToolResponse:
    """Report an unexpected error; unlike not-found results these are logged with a traceback."""
    logger.exception(f"{key} failed: {exc}")
    return failure(fmt(key, lang, error=str(exc)))
