"""Workflow directory layout and path normalization.

Every component resolves the ``.spec-workflow`` tree through these helpers so
the watcher, aggregator and approval store agree on what a document path is.
"""
from __future__ import annotations

import os
import re
from pathlib import Path, PurePosixPath

from spec_workflow import config

_SPEC_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9._-]*$")
_WINDOWS_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:/")


def get_workflow_root(project_path: Path | str) -> Path:
    return Path(project_path) / config.SPEC_WORKFLOW_DIR_NAME


def get_specs_root(project_path: Path | str) -> Path:
    return get_workflow_root(project_path) / config.SPECS_DIR_NAME


def get_spec_path(project_path: Path | str, spec_name: str) -> Path:
    return get_specs_root(project_path) / spec_name


def get_steering_path(project_path: Path | str) -> Path:
    return get_workflow_root(project_path) / config.STEERING_DIR_NAME


def get_approvals_root(project_path: Path | str) -> Path:
    return get_workflow_root(project_path) / config.APPROVALS_DIR_NAME


def is_valid_spec_name(name: str) -> bool:
    """Spec names are directory names: lowercase kebab-case, no separators."""
    return bool(_SPEC_NAME_PATTERN.match(name or ""))


def to_posix(raw: str) -> str:
    return (raw or "").strip().replace("\\", "/")


def normalize_document_path(project_path: Path | str, file_path: str) -> str:
    """Map an absolute or project-relative document path to a canonical key.

    The result is a project-relative POSIX path without ``./`` prefixes, so
    ``.spec-workflow\\specs\\a\\design.md`` and ``/abs/project/.spec-workflow/specs/a/design.md``
    produce the same key. Paths outside the project are returned as absolute POSIX paths.
    """
    value = to_posix(file_path)
    if not value:
        return ""

    if value.startswith("/") or _WINDOWS_DRIVE_PATTERN.match(value):
        for root in _project_roots(project_path):
            if value == root or value.startswith(root + "/"):
                value = value[len(root):].lstrip("/")
                break
        else:
            return value

    parts: list[str] = []
    for part in PurePosixPath(value).parts:
        if part in ("", "."):
            continue
        if part == "..":
            if parts:
                parts.pop()
            continue
        parts.append(part)
    # "specs/x/design.md" is shorthand for a path under the workflow root
    if parts and parts[0] in (config.SPECS_DIR_NAME, config.STEERING_DIR_NAME):
        parts.insert(0, config.SPEC_WORKFLOW_DIR_NAME)
    return "/".join(parts)


def _project_roots(project_path: Path | str) -> list[str]:
    roots = [to_posix(os.path.abspath(str(project_path))).rstrip("/")]
    resolved = to_posix(str(Path(project_path).resolve())).rstrip("/")
    if resolved not in roots:
        roots.append(resolved)
    return roots


def spec_document_key(spec_name: str, document: str) -> str:
    """Canonical key of a phase document, e.g. ``.spec-workflow/specs/x/design.md``."""
    return "/".join(
        (config.SPEC_WORKFLOW_DIR_NAME, config.SPECS_DIR_NAME, spec_name, f"{document}.md")
    )
