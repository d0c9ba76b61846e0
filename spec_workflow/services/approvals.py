"""Approval tool handlers: request, poll, revise, respond and clean up."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Optional

from spec_workflow.db.approval_storage import ApprovalStateError, ApprovalStorage
from spec_workflow.i18n import Formatter, translate
from spec_workflow.models import ApprovalRequest, ToolResponse
from spec_workflow.services.common import failure, project_context, unexpected_failure

_CATEGORIES = ("spec", "steering")
_TYPES = ("document", "action")
_REVIEW_STATUSES = ("approved", "rejected", "needs-revision")


def _not_found(approval_id: str, lang: Optional[str], fmt: Formatter) -> ToolResponse:
    return failure(
        fmt("approvals.notFound", lang, approvalId=approval_id),
        [fmt("approvals.nextSteps.checkId", lang)],
    )


def request_approval(
    project_path: Path | str,
    title: str,
    file_path: str,
    approval_type: str,
    category: str,
    category_name: str,
    *,
    lang: Optional[str] = None,
    fmt: Formatter = translate,
) -> ToolResponse:
    if category not in _CATEGORIES:
        return failure(fmt("approvals.request.invalidCategory", lang, category=category))
    if approval_type not in _TYPES:
        return failure(fmt("approvals.request.invalidType", lang, type=approval_type))

    try:
        with ApprovalStorage(project_path) as store:
            approval_id = store.create_approval(title, file_path, category, category_name, approval_type)
    except Exception as exc:
        return unexpected_failure(fmt, lang, "approvals.request.failed", exc)

    return ToolResponse(
        success=True,
        message=fmt("approvals.request.success", lang, approvalId=approval_id),
        data={
            "approvalId": approval_id,
            "title": title,
            "filePath": file_path,
            "type": approval_type,
            "status": "pending",
        },
        nextSteps=[
            fmt("approvals.request.nextSteps.poll", lang, approvalId=approval_id),
            fmt("approvals.request.nextSteps.wait", lang),
        ],
        projectContext=project_context(project_path, spec_name=category_name if category == "spec" else None),
    )


def _status_next_steps(approval: ApprovalRequest, lang: Optional[str], fmt: Formatter) -> list[str]:
    steps: list[str] = []
    if approval.status == "pending":
        steps.append(fmt("approvals.status.nextSteps.pending.blocked", lang))
        steps.append(fmt("approvals.status.nextSteps.pending.poll", lang))
        return steps
    if approval.status == "approved":
        steps.append(fmt("approvals.status.nextSteps.approved.proceed", lang))
        steps.append(fmt("approvals.status.nextSteps.approved.cleanup", lang))
    elif approval.status == "rejected":
        steps.append(fmt("approvals.status.nextSteps.rejected.blocked", lang))
        steps.append(fmt("approvals.status.nextSteps.rejected.revise", lang))
    else:
        steps.append(fmt("approvals.status.nextSteps.needsRevision.update", lang))
        steps.append(fmt("approvals.status.nextSteps.needsRevision.resubmit", lang))
    if approval.response:
        steps.append(fmt("approvals.status.nextSteps.response", lang, response=approval.response))
    if approval.annotations and approval.status != "approved":
        steps.append(fmt("approvals.status.nextSteps.annotations", lang, annotations=approval.annotations))
    if approval.comments and approval.status == "needs-revision":
        steps.append(fmt("approvals.status.nextSteps.comments", lang, count=len(approval.comments)))
    return steps


def get_approval_status(
    project_path: Path | str,
    approval_id: str,
    *,
    lang: Optional[str] = None,
    fmt: Formatter = translate,
) -> ToolResponse:
    try:
        with ApprovalStorage(project_path) as store:
            approval = store.get_approval(approval_id)
    except Exception as exc:
        return unexpected_failure(fmt, lang, "approvals.status.failed", exc)

    if approval is None:
        return _not_found(approval_id, lang, fmt)

    can_proceed = approval.status == "approved"
    if approval.status == "pending":
        message = fmt("approvals.status.blocked", lang, status=approval.status)
    else:
        message = fmt("approvals.status.message", lang, status=approval.status)

    return ToolResponse(
        success=True,
        message=message,
        data={
            "approvalId": approval.id,
            "title": approval.title,
            "type": approval.type,
            "status": approval.status,
            "createdAt": approval.createdAt,
            "respondedAt": approval.respondedAt,
            "response": approval.response,
            "annotations": approval.annotations,
            "comments": [comment.model_dump(exclude_none=True) for comment in approval.comments],
            "revisions": len(approval.revisionHistory),
            "isCompleted": approval.status in ("approved", "rejected"),
            "canProceed": can_proceed,
            "mustWait": not can_proceed,
        },
        nextSteps=_status_next_steps(approval, lang, fmt),
        projectContext=project_context(project_path),
    )


def delete_approval(
    project_path: Path | str,
    approval_id: str,
    *,
    lang: Optional[str] = None,
    fmt: Formatter = translate,
) -> ToolResponse:
    try:
        with ApprovalStorage(project_path) as store:
            approval = store.get_approval(approval_id)
            if approval is None:
                return _not_found(approval_id, lang, fmt)
            if approval.status != "approved":
                return failure(
                    fmt("approvals.delete.notApproved", lang, approvalId=approval_id, status=approval.status),
                    [fmt("approvals.delete.nextSteps.waitApproval", lang)],
                    data={"approvalId": approval_id, "currentStatus": approval.status, "title": approval.title},
                )
            deleted = store.delete_approval(approval_id)
    except Exception as exc:
        return unexpected_failure(fmt, lang, "approvals.delete.error", exc)

    if not deleted:
        # Lost a race with another writer; report the state the caller can re-check
        return failure(
            fmt("approvals.delete.failed", lang, approvalId=approval_id),
            [fmt("approvals.nextSteps.checkId", lang)],
        )

    return ToolResponse(
        success=True,
        message=fmt("approvals.delete.success", lang, approvalId=approval_id),
        data={
            "deletedApprovalId": approval_id,
            "title": approval.title,
            "category": approval.category,
            "categoryName": approval.categoryName,
        },
        nextSteps=[fmt("approvals.delete.nextSteps.done", lang)],
        projectContext=project_context(project_path),
    )


def submit_revision(
    project_path: Path | str,
    approval_id: str,
    revised_content: str,
    revision_summary: str,
    *,
    lang: Optional[str] = None,
    fmt: Formatter = translate,
) -> ToolResponse:
    try:
        with ApprovalStorage(project_path) as store:
            approval = store.create_revision(approval_id, revised_content, revision_summary)
    except ApprovalStateError as exc:
        return failure(
            fmt("approvals.revision.wrongStatus", lang, approvalId=approval_id, status=exc.current_status),
            [fmt("approvals.status.nextSteps.pending.poll", lang)],
            data={"approvalId": approval_id, "currentStatus": exc.current_status},
        )
    except Exception as exc:
        return unexpected_failure(fmt, lang, "approvals.revision.failed", exc)

    if approval is None:
        return _not_found(approval_id, lang, fmt)

    return ToolResponse(
        success=True,
        message=fmt("approvals.revision.success", lang, approvalId=approval_id),
        data={
            "approvalId": approval_id,
            "status": approval.status,
            "revisionSummary": revision_summary,
            "version": len(approval.revisionHistory),
        },
        nextSteps=[
            fmt("approvals.request.nextSteps.poll", lang, approvalId=approval_id),
            fmt("approvals.request.nextSteps.wait", lang),
        ],
        projectContext=project_context(project_path),
    )


def respond_to_approval(
    project_path: Path | str,
    approval_id: str,
    status: str,
    response: str,
    annotations: Optional[str] = None,
    comments: Optional[Iterable[Any]] = None,
    *,
    lang: Optional[str] = None,
    fmt: Formatter = translate,
) -> ToolResponse:
    """Record the reviewer's decision, as the dashboard does."""
    if status not in _REVIEW_STATUSES:
        return failure(fmt("approvals.respond.invalidStatus", lang, status=status))

    try:
        with ApprovalStorage(project_path) as store:
            approval = store.update_approval(approval_id, status, response, annotations, comments)
    except ApprovalStateError as exc:
        return failure(
            fmt(
                "approvals.respond.wrongStatus",
                lang,
                approvalId=approval_id,
                current=exc.current_status,
                status=status,
            ),
            data={"approvalId": approval_id, "currentStatus": exc.current_status},
        )
    except Exception as exc:
        return unexpected_failure(fmt, lang, "approvals.respond.failed", exc)

    if approval is None:
        return _not_found(approval_id, lang, fmt)

    return ToolResponse(
        success=True,
        message=fmt("approvals.respond.success", lang, approvalId=approval_id, status=status),
        data={
            "approvalId": approval_id,
            "status": approval.status,
            "respondedAt": approval.respondedAt,
        },
        projectContext=project_context(project_path),
    )
