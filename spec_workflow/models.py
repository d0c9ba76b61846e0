"""Pydantic models matching the dashboard-facing JSON shapes."""
from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Any, Literal, Optional, Union

TaskStatus = Literal["pending", "in-progress", "completed"]
ApprovalStatus = Literal["pending", "approved", "rejected", "needs-revision"]
ApprovalCategory = Literal["spec", "steering"]
ApprovalType = Literal["document", "action"]
ChangeAction = Literal["created", "updated", "deleted"]

# ── Task-related models ────────────────────────────────────────────

class Task(BaseModel):
    id: str
    description: str
    status: TaskStatus = "pending"
    leverage: Optional[str] = None
    requirements: Optional[str] = None
    details: list[str] = Field(default_factory=list)


class TaskSummary(BaseModel):
    total: int = 0
    completed: int = 0
    inProgress: int = 0
    pending: int = 0


class TaskParseResult(BaseModel):
    tasks: list[Task] = Field(default_factory=list)
    summary: TaskSummary = Field(default_factory=TaskSummary)
    skippedLines: list[int] = Field(default_factory=list)


# ── Spec-related models ────────────────────────────────────────────

class PhaseStatus(BaseModel):
    exists: bool = False
    approved: Optional[bool] = None
    lastModified: Optional[str] = None
    content: Optional[str] = None


class SpecPhases(BaseModel):
    requirements: PhaseStatus = Field(default_factory=PhaseStatus)
    design: PhaseStatus = Field(default_factory=PhaseStatus)
    tasks: PhaseStatus = Field(default_factory=PhaseStatus)
    implementation: PhaseStatus = Field(default_factory=PhaseStatus)


class TaskProgress(BaseModel):
    # in-progress tasks are counted in total only
    total: int = 0
    completed: int = 0
    pending: int = 0


class PhaseReadError(BaseModel):
    document: str
    path: str
    message: str


class SpecData(BaseModel):
    name: str
    displayName: str = ""
    description: Optional[str] = None
    createdAt: str = ""
    lastModified: str = ""
    phases: SpecPhases = Field(default_factory=SpecPhases)
    taskProgress: Optional[TaskProgress] = None
    readErrors: list[PhaseReadError] = Field(default_factory=list)


class SteeringDocuments(BaseModel):
    product: bool = False
    tech: bool = False
    structure: bool = False


class SteeringStatus(BaseModel):
    exists: bool = False
    documents: SteeringDocuments = Field(default_factory=SteeringDocuments)
    lastModified: Optional[str] = None


class DocumentInfo(BaseModel):
    name: str
    exists: bool = False
    path: str
    lastModified: Optional[str] = None


# ── Approval-related models ────────────────────────────────────────

class ApprovalComment(BaseModel):
    id: str
    text: str
    lineNumber: Optional[int] = None
    highlightedText: Optional[str] = None
    timestamp: str = ""
    resolved: bool = False


class ApprovalRevision(BaseModel):
    version: int
    content: str
    summary: str = ""
    timestamp: str
    previousResponse: Optional[str] = None
    previousAnnotations: Optional[str] = None
    previousComments: list[ApprovalComment] = Field(default_factory=list)


class ApprovalRequest(BaseModel):
    id: str
    title: str
    filePath: str
    category: ApprovalCategory = "spec"
    categoryName: str
    type: ApprovalType = "document"
    status: ApprovalStatus = "pending"
    createdAt: str
    respondedAt: Optional[str] = None
    response: Optional[str] = None
    annotations: Optional[str] = None
    comments: list[ApprovalComment] = Field(default_factory=list)
    revisionHistory: list[ApprovalRevision] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


# ── Watcher events ─────────────────────────────────────────────────

class SpecChangeEvent(BaseModel):
    type: Literal["spec"] = "spec"
    action: ChangeAction
    name: str
    data: Optional[SpecData] = None


class SteeringChangeEvent(BaseModel):
    type: Literal["steering"] = "steering"
    action: ChangeAction
    name: str
    steeringStatus: SteeringStatus


ChangeEvent = Union[SpecChangeEvent, SteeringChangeEvent]


# ── Tool responses ─────────────────────────────────────────────────

class ProjectContext(BaseModel):
    projectPath: str
    workflowRoot: str
    specName: Optional[str] = None
    currentPhase: Optional[str] = None


class ToolResponse(BaseModel):
    success: bool
    message: str
    data: Optional[dict[str, Any]] = None
    nextSteps: list[str] = Field(default_factory=list)
    projectContext: Optional[ProjectContext] = None
