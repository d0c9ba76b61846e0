"""Spec workflow runtime: wires the parser, approval store and watcher for one project."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, Iterable, Optional

from spec_workflow import config
from spec_workflow.db.approval_storage import ApprovalStorage
from spec_workflow.db.file_watcher import Listener, SpecWatcher
from spec_workflow.observability import initialize as initialize_observability, shutdown as shutdown_observability
from spec_workflow.parsers.specs import SpecParser

logger = logging.getLogger("spec_workflow.runtime")


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or config.LOG_LEVEL),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@dataclass
class WorkflowRuntime:
    project_path: Path
    approvals: ApprovalStorage
    parser: SpecParser
    watcher: SpecWatcher

    def open_approvals(self) -> ApprovalStorage:
        """A fresh, unstarted store for one scoped ``with`` block."""
        return ApprovalStorage(self.project_path)


@asynccontextmanager
async def workflow_runtime(
    project_path: Path | str,
    listeners: Iterable[Listener] = (),
    *,
    watch: bool = True,
) -> AsyncIterator[WorkflowRuntime]:
    """Startup / shutdown lifecycle for one project's workflow directory."""
    configure_logging()
    project = Path(project_path).resolve()
    logger.info(f"Spec workflow starting for {project}")
    initialize_observability()

    approvals = ApprovalStorage(project).start()
    parser = SpecParser(project, approvals=approvals)
    watcher = SpecWatcher(project, parser)
    for listener in listeners:
        watcher.add_listener(listener)

    runtime = WorkflowRuntime(project_path=project, approvals=approvals, parser=parser, watcher=watcher)
    try:
        if watch:
            await watcher.start()
        yield runtime
    finally:
        await watcher.stop()
        approvals.stop()
        shutdown_observability()
        logger.info("Spec workflow shut down")
