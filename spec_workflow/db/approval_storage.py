"""File-backed approval request store.

One JSON file per approval under ``.spec-workflow/approvals/<categoryName>/<id>.json``.
Records written by older releases directly under ``approvals/`` are still read.

Lifecycle::

    pending --(reviewer)--> approved | rejected | needs-revision
    needs-revision --(create_revision)--> pending

``approved`` and ``rejected`` accept no further transitions; an approved record
may only be removed with ``delete_approval``.
"""
from __future__ import annotations

import json
import logging
import re
import time
import uuid
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from spec_workflow.date_utils import utc_now_iso
from spec_workflow.db.atomic_write import atomic_create_json, atomic_write_json
from spec_workflow.models import (
    ApprovalComment,
    ApprovalRequest,
    ApprovalRevision,
)
from spec_workflow.observability import record_approval_transition
from spec_workflow.paths import get_approvals_root, normalize_document_path

logger = logging.getLogger("spec_workflow.approvals")

_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"approved", "rejected", "needs-revision"}),
    "needs-revision": frozenset({"pending"}),
    "approved": frozenset(),
    "rejected": frozenset(),
}
_REVIEW_STATUSES = frozenset({"approved", "rejected", "needs-revision"})
_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")
_UNSAFE_DIR_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class ApprovalStoreNotStartedError(RuntimeError):
    """Raised when the store is used outside a start()/stop() window."""


class ApprovalStateError(ValueError):
    """Raised when an approval action is not allowed from its current status."""

    def __init__(self, approval_id: str, current_status: str, attempted: str):
        self.approval_id = approval_id
        self.current_status = current_status
        self.attempted = attempted
        super().__init__(
            f"Approval {approval_id} is '{current_status}'; cannot move to '{attempted}'"
        )


def can_transition(current: str, target: str) -> bool:
    return target in _ALLOWED_TRANSITIONS.get(current, frozenset())


def generate_approval_id() -> str:
    return f"approval_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def _category_dir_name(category_name: str) -> str:
    cleaned = _UNSAFE_DIR_CHARS.sub("-", (category_name or "").strip()).strip(".-")
    return cleaned or "uncategorized"


def _coerce_comments(comments: Optional[Iterable[Any]]) -> list[ApprovalComment]:
    if not comments:
        return []
    return [
        item if isinstance(item, ApprovalComment) else ApprovalComment.model_validate(item)
        for item in comments
    ]


class ApprovalStorage:
    """Persists approval requests and enforces their status transitions."""

    def __init__(self, project_path: Path | str):
        self.project_path = Path(project_path)
        self.approvals_dir = get_approvals_root(self.project_path)
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> "ApprovalStorage":
        # the approvals directory is created by the first write, not here
        if not self._started:
            self._started = True
            logger.debug("Approval storage started at %s", self.approvals_dir)
        return self

    def stop(self) -> None:
        self._started = False

    @property
    def is_started(self) -> bool:
        return self._started

    def __enter__(self) -> "ApprovalStorage":
        return self.start()

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()

    def _require_started(self) -> None:
        if not self._started:
            raise ApprovalStoreNotStartedError("Approval storage is not started; call start() first")

    # ------------------------------------------------------------------
    # Record I/O
    # ------------------------------------------------------------------

    def _find_path(self, approval_id: str) -> Optional[Path]:
        if not _ID_PATTERN.match(approval_id or ""):
            return None
        filename = f"{approval_id}.json"
        if self.approvals_dir.is_dir():
            for category_dir in sorted(self.approvals_dir.iterdir()):
                if not category_dir.is_dir():
                    continue
                candidate = category_dir / filename
                if candidate.is_file():
                    return candidate
        legacy = self.approvals_dir / filename
        if legacy.is_file():
            return legacy
        return None

    def _read(self, path: Path) -> Optional[ApprovalRequest]:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return ApprovalRequest.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning(f"Skipping unreadable approval record {path}: {exc}")
            return None

    def _write(self, path: Path, approval: ApprovalRequest) -> None:
        atomic_write_json(path, approval.model_dump(mode="json", exclude_none=True))

    def _iter_records(self) -> Iterable[ApprovalRequest]:
        if not self.approvals_dir.is_dir():
            return
        for entry in sorted(self.approvals_dir.iterdir()):
            if entry.is_dir():
                for path in sorted(entry.glob("*.json")):
                    approval = self._read(path)
                    if approval:
                        yield approval
            elif entry.suffix == ".json":
                approval = self._read(entry)
                if approval:
                    yield approval

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_approval(
        self,
        title: str,
        file_path: str,
        category: str,
        category_name: str,
        approval_type: str,
    ) -> str:
        """Create a pending approval request and return its new ID."""
        self._require_started()
        category_dir = self.approvals_dir / _category_dir_name(category_name)
        category_dir.mkdir(parents=True, exist_ok=True)

        while True:
            approval = ApprovalRequest(
                id=generate_approval_id(),
                title=title,
                filePath=file_path,
                category=category,
                categoryName=category_name,
                type=approval_type,
                status="pending",
                createdAt=utc_now_iso(),
            )
            try:
                atomic_create_json(
                    category_dir / f"{approval.id}.json",
                    approval.model_dump(mode="json", exclude_none=True),
                )
            except FileExistsError:
                continue
            break

        logger.info(f"Created approval {approval.id} for {file_path} ({category}/{category_name})")
        return approval.id

    def get_approval(self, approval_id: str) -> Optional[ApprovalRequest]:
        self._require_started()
        path = self._find_path(approval_id)
        if path is None:
            return None
        return self._read(path)

    def get_all_approvals(self) -> list[ApprovalRequest]:
        """Return every readable approval, newest first."""
        self._require_started()
        return sorted(self._iter_records(), key=lambda a: a.createdAt, reverse=True)

    def get_all_pending_approvals(self) -> list[ApprovalRequest]:
        return [a for a in self.get_all_approvals() if a.status == "pending"]

    def update_approval(
        self,
        approval_id: str,
        status: str,
        response: str,
        annotations: Optional[str] = None,
        comments: Optional[Iterable[Any]] = None,
    ) -> Optional[ApprovalRequest]:
        """Record a reviewer decision on a pending approval.

        Returns the updated record, or None if the ID is unknown. Raises
        ApprovalStateError when the record is not pending or ``status`` is not
        a review outcome; the stored record is left untouched in that case.
        """
        self._require_started()
        path = self._find_path(approval_id)
        approval = self._read(path) if path else None
        if approval is None:
            return None
        if status not in _REVIEW_STATUSES or not can_transition(approval.status, status):
            raise ApprovalStateError(approval_id, approval.status, status)

        previous = approval.status
        approval.status = status
        approval.response = response
        approval.respondedAt = utc_now_iso()
        if annotations:
            approval.annotations = annotations
        if comments:
            approval.comments = _coerce_comments(comments)
        self._write(path, approval)

        record_approval_transition(previous, status, project_id=self.project_path.name)
        logger.info(f"Approval {approval_id} moved {previous} -> {status}")
        return approval

    def create_revision(
        self,
        approval_id: str,
        revised_content: str,
        revision_summary: str,
    ) -> Optional[ApprovalRequest]:
        """Submit a revision for an approval in ``needs-revision``.

        The previous round's feedback moves into a new revision-history entry and
        the record returns to ``pending`` with no response, annotations or comments.
        Returns None if the ID is unknown; raises ApprovalStateError otherwise
        when the record is not awaiting a revision.
        """
        self._require_started()
        path = self._find_path(approval_id)
        approval = self._read(path) if path else None
        if approval is None:
            return None
        if not can_transition(approval.status, "pending"):
            raise ApprovalStateError(approval_id, approval.status, "pending")

        approval.revisionHistory.append(
            ApprovalRevision(
                version=len(approval.revisionHistory) + 1,
                content=revised_content,
                summary=revision_summary,
                timestamp=utc_now_iso(),
                previousResponse=approval.response,
                previousAnnotations=approval.annotations,
                previousComments=list(approval.comments),
            )
        )
        approval.status = "pending"
        approval.response = None
        approval.annotations = None
        approval.respondedAt = None
        approval.comments = []
        self._write(path, approval)

        record_approval_transition("needs-revision", "pending", project_id=self.project_path.name)
        logger.info(
            f"Approval {approval_id} revised (version {len(approval.revisionHistory)}), back to pending"
        )
        return approval

    def delete_approval(self, approval_id: str) -> bool:
        """Delete an approved request. Any other status is refused with False."""
        self._require_started()
        path = self._find_path(approval_id)
        approval = self._read(path) if path else None
        if approval is None:
            return False
        if approval.status != "approved":
            logger.warning(
                f"Refusing to delete approval {approval_id} with status '{approval.status}'"
            )
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info(f"Deleted approval {approval_id}")
        return True

    def approved_document_paths(self, category: str = "spec") -> set[str]:
        """Normalized file paths of approved document approvals in ``category``."""
        self._require_started()
        return {
            normalize_document_path(self.project_path, approval.filePath)
            for approval in self._iter_records()
            if approval.status == "approved" and approval.category == category
        }
