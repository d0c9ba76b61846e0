"""Derive spec and steering snapshots from the workflow directory.

Nothing is cached: every call re-reads the phase documents, so a snapshot always
reflects what is on disk at the time of the call.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import yaml

from spec_workflow import config
from spec_workflow.date_utils import earliest, format_datetime_utc, latest, stat_dates
from spec_workflow.models import (
    DocumentInfo,
    PhaseReadError,
    PhaseStatus,
    SpecData,
    SpecPhases,
    SteeringDocuments,
    SteeringStatus,
    TaskProgress,
)
from spec_workflow.observability import record_parser_failure, start_span
from spec_workflow.parsers.tasks import parse_tasks
from spec_workflow.paths import (
    get_spec_path,
    get_specs_root,
    get_steering_path,
    is_valid_spec_name,
    spec_document_key,
)

logger = logging.getLogger("spec_workflow.parser")

_FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---\s*\n?(.*)", re.DOTALL)

# Documents that must exist (non-empty) before a phase document may be written
_PREREQUISITES = {
    "requirements": None,
    "design": "requirements",
    "tasks": "design",
}


class WorkflowOrderError(ValueError):
    """Raised when a phase document is written before its predecessor exists."""

    def __init__(self, document: str, missing: str):
        self.document = document
        self.missing = missing
        super().__init__(f"Cannot create {document}.md before {missing}.md exists")


def _extract_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    match = _FRONTMATTER_PATTERN.match(text)
    if not match:
        return {}, text
    try:
        fm = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError:
        fm = {}
    if not isinstance(fm, dict):
        fm = {}
    return fm, match.group(2)


def _extract_description(text: str) -> Optional[str]:
    """Frontmatter ``description``, else the first prose line after the title."""
    fm, body = _extract_frontmatter(text)
    value = fm.get("description")
    if isinstance(value, str) and value.strip():
        return value.strip()
    for line in body.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", "-", "*", ">", "|", "```")):
            continue
        return stripped
    return None


def display_name(spec_name: str) -> str:
    words = re.split(r"[-_.\s]+", spec_name)
    return " ".join(word.capitalize() for word in words if word)


class _DocumentRead:
    __slots__ = ("content", "stats", "error")

    def __init__(self, content: Optional[str] = None, stats=None, error: Optional[str] = None):
        self.content = content
        self.stats = stats
        self.error = error

    @property
    def exists(self) -> bool:
        return bool(self.content and self.content.strip())


def _read_document(path: Path) -> _DocumentRead:
    """Read a markdown document; a missing file is a normal "not yet" state."""
    try:
        content = path.read_text(encoding="utf-8")
        stats = path.stat()
    except FileNotFoundError:
        return _DocumentRead()
    except (OSError, UnicodeDecodeError) as exc:
        return _DocumentRead(error=str(exc))
    return _DocumentRead(content=content, stats=stats)


class SpecParser:
    """Builds SpecData snapshots for the specs of one project.

    ``approvals`` is an optional started ApprovalStorage; without one every
    phase reports ``approved=False``.
    """

    def __init__(self, project_path: Path | str, approvals=None):
        self.project_path = Path(project_path)
        self.specs_root = get_specs_root(self.project_path)
        self.steering_root = get_steering_path(self.project_path)
        self.approvals = approvals

    def _approved_keys(self) -> set[str]:
        if self.approvals is None:
            return set()
        return self.approvals.approved_document_paths(category="spec")

    def _iter_spec_dirs(self) -> list[Path]:
        if not self.specs_root.is_dir():
            return []
        return sorted(
            (entry for entry in self.specs_root.iterdir() if entry.is_dir() and not entry.name.startswith(".")),
            key=lambda entry: entry.name,
        )

    def get_all_specs(self) -> list[SpecData]:
        """Snapshot every spec directory, ordered by directory name."""
        with start_span("spec_workflow.get_all_specs", {"project": self.project_path.name}):
            approved = self._approved_keys()
            return [self._build_spec(spec_dir, approved) for spec_dir in self._iter_spec_dirs()]

    def get_spec(self, name: str) -> Optional[SpecData]:
        """Snapshot one spec, or None when its directory does not exist."""
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            return None
        spec_dir = get_spec_path(self.project_path, name)
        if not spec_dir.is_dir():
            return None
        with start_span("spec_workflow.get_spec", {"project": self.project_path.name, "spec": name}):
            return self._build_spec(spec_dir, self._approved_keys())

    def _build_spec(self, spec_dir: Path, approved_keys: set[str]) -> SpecData:
        name = spec_dir.name
        spec = SpecData(name=name, displayName=display_name(name))
        created: list[datetime] = []
        modified: list[datetime] = []
        reads: dict[str, _DocumentRead] = {}

        for document in config.PHASE_DOCUMENTS:
            path = spec_dir / f"{document}.md"
            read = _read_document(path)
            reads[document] = read
            phase: PhaseStatus = getattr(spec.phases, document)

            if read.error is not None:
                logger.warning(f"Failed to read {path}: {read.error}")
                record_parser_failure(document, project_id=self.project_path.name)
                spec.readErrors.append(
                    PhaseReadError(document=document, path=path.as_posix(), message=read.error)
                )
                phase.exists = False
                phase.approved = False
                continue

            phase.exists = read.exists
            phase.approved = read.exists and spec_document_key(name, document) in approved_keys
            # blank documents count as absent, timestamps included
            if read.exists and read.stats is not None:
                created_dt, modified_dt = stat_dates(read.stats)
                phase.lastModified = format_datetime_utc(modified_dt)
                modified.append(modified_dt)
                if created_dt:
                    created.append(created_dt)
            if read.exists:
                phase.content = read.content

        tasks_read = reads["tasks"]
        if tasks_read.exists:
            result = parse_tasks(tasks_read.content or "")
            if result.skippedLines:
                logger.debug(f"Skipped malformed task lines in {name}/tasks.md: {result.skippedLines}")
            spec.taskProgress = TaskProgress(
                total=result.summary.total,
                completed=result.summary.completed,
                pending=result.summary.pending,
            )
            spec.phases.implementation = PhaseStatus(exists=result.summary.total > 0)
        else:
            spec.phases.implementation = PhaseStatus(exists=False)

        requirements_read = reads["requirements"]
        if requirements_read.exists:
            spec.description = _extract_description(requirements_read.content or "")

        dir_created, dir_modified = _dir_dates(spec_dir)
        created_at = earliest(created) or dir_created
        last_modified = latest(modified) or dir_modified
        spec.createdAt = format_datetime_utc(created_at) if created_at else ""
        spec.lastModified = format_datetime_utc(last_modified) if last_modified else ""
        return spec

    # ------------------------------------------------------------------
    # Steering
    # ------------------------------------------------------------------

    def get_steering_status(self) -> SteeringStatus:
        status = SteeringStatus()
        if not self.steering_root.is_dir():
            return status
        status.exists = True
        modified: list[datetime] = []
        for document in config.STEERING_DOCUMENTS:
            path = self.steering_root / f"{document}.md"
            read = _read_document(path)
            if read.error is not None:
                logger.warning(f"Failed to read steering document {path}: {read.error}")
                record_parser_failure(f"steering.{document}", project_id=self.project_path.name)
                continue
            setattr(status.documents, document, read.exists)
            if read.exists and read.stats is not None:
                modified.append(stat_dates(read.stats)[1])
        last = latest(modified)
        status.lastModified = format_datetime_utc(last) if last else None
        return status

    def get_steering_documents(self) -> list[DocumentInfo]:
        documents: list[DocumentInfo] = []
        for document in config.STEERING_DOCUMENTS:
            path = self.steering_root / f"{document}.md"
            read = _read_document(path)
            last = stat_dates(read.stats)[1] if read.exists and read.stats is not None else None
            documents.append(
                DocumentInfo(
                    name=document,
                    exists=read.exists,
                    path=path.as_posix(),
                    lastModified=format_datetime_utc(last) if last else None,
                )
            )
        return documents


def _dir_dates(path: Path) -> tuple[Optional[datetime], Optional[datetime]]:
    try:
        return stat_dates(path.stat())
    except OSError:
        return None, None


class SpecDocumentWriter:
    """Writes phase and steering documents, enforcing the workflow order."""

    def __init__(self, project_path: Path | str):
        self.project_path = Path(project_path)

    def write(self, spec_name: str, document: str, content: str) -> Path:
        """Create or replace ``<spec>/<document>.md``.

        design.md needs a non-empty requirements.md, tasks.md needs a non-empty
        design.md; otherwise WorkflowOrderError is raised and nothing is written.
        """
        if document not in _PREREQUISITES:
            raise ValueError(f"Unknown phase document: {document}")
        if not is_valid_spec_name(spec_name):
            raise ValueError(f"Invalid spec name: {spec_name!r}")

        spec_dir = get_spec_path(self.project_path, spec_name)
        missing = _PREREQUISITES[document]
        if missing is not None:
            prerequisite = _read_document(spec_dir / f"{missing}.md")
            if not prerequisite.exists:
                raise WorkflowOrderError(document, missing)

        spec_dir.mkdir(parents=True, exist_ok=True)
        path = spec_dir / f"{document}.md"
        path.write_text(content, encoding="utf-8")
        logger.info(f"Wrote {spec_name}/{document}.md ({len(content)} chars)")
        return path

    def write_steering(self, document: str, content: str) -> Path:
        if document not in config.STEERING_DOCUMENTS:
            raise ValueError(f"Unknown steering document: {document}")
        steering_dir = get_steering_path(self.project_path)
        steering_dir.mkdir(parents=True, exist_ok=True)
        path = steering_dir / f"{document}.md"
        path.write_text(content, encoding="utf-8")
        logger.info(f"Wrote steering/{document}.md ({len(content)} chars)")
        return path


def derive_workflow_status(spec: SpecData) -> tuple[str, str]:
    """Return ``(currentPhase, overallStatus)`` for a spec snapshot."""
    progress = spec.taskProgress
    if not spec.phases.requirements.exists:
        return "requirements", "requirements-needed"
    if not spec.phases.design.exists:
        return "design", "design-needed"
    if not spec.phases.tasks.exists:
        return "tasks", "tasks-needed"
    if progress and progress.pending > 0:
        return "implementation", "implementing"
    if progress and progress.total > 0 and progress.completed == progress.total:
        return "completed", "completed"
    return "implementation", "ready-for-implementation"
