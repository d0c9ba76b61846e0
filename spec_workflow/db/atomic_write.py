"""Atomic JSON file writes for per-record stores."""
from __future__ import annotations

import json
import os
import uuid
from pathlib import Path
from typing import Any


def _fsync_dir(directory: Path) -> None:
    try:
        dir_fd = os.open(str(directory), os.O_RDONLY)
    except OSError:
        return  # directory fsync is unavailable on some platforms
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


def _write_temp(directory: Path, prefix: str, payload: bytes) -> Path:
    temp_path = directory / f".{prefix}.{os.getpid()}.{uuid.uuid4().hex[:8]}.tmp"
    fd = os.open(str(temp_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
    try:
        os.write(fd, payload)
        os.fsync(fd)
    finally:
        os.close(fd)
    return temp_path


def _encode(data: dict[str, Any]) -> bytes:
    return json.dumps(data, indent=2, ensure_ascii=False).encode("utf-8")


def atomic_write_json(final_path: Path, data: dict[str, Any]) -> None:
    """Write JSON to final_path atomically: temp -> fsync -> rename -> fsync dir.

    The temp file lives beside the destination so the rename never crosses a
    filesystem. Readers see either the old record or the new one, never a mix.
    """
    directory = final_path.parent
    temp_path = _write_temp(directory, final_path.stem, _encode(data))
    try:
        os.replace(temp_path, final_path)
        _fsync_dir(directory)
    finally:
        temp_path.unlink(missing_ok=True)


def atomic_create_json(final_path: Path, data: dict[str, Any]) -> None:
    """Atomically create final_path, failing with FileExistsError if it exists.

    Uses a hard link from a fully written temp file, so the new record appears
    complete or not at all and two creators can never both win the same name.
    """
    directory = final_path.parent
    temp_path = _write_temp(directory, final_path.stem, _encode(data))
    try:
        os.link(temp_path, final_path)
        _fsync_dir(directory)
    finally:
        temp_path.unlink(missing_ok=True)
