"""Shared timestamp helpers for filesystem-derived dates."""
from __future__ import annotations

import os
from datetime import datetime, timezone


def format_datetime_utc(value: datetime) -> str:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    return format_datetime_utc(datetime.now(timezone.utc))


def _file_created_datetime(stats: os.stat_result) -> datetime | None:
    # st_birthtime is only reported on macOS/BSD and newer Windows builds
    birthtime = getattr(stats, "st_birthtime", None)
    if isinstance(birthtime, (int, float)) and birthtime > 0:
        return datetime.fromtimestamp(float(birthtime), timezone.utc)
    ctime = getattr(stats, "st_ctime", None)
    if isinstance(ctime, (int, float)) and ctime > 0:
        return datetime.fromtimestamp(float(ctime), timezone.utc)
    return None


def stat_dates(stats: os.stat_result) -> tuple[datetime | None, datetime]:
    """Return (created, modified) datetimes for a stat result."""
    created = _file_created_datetime(stats)
    modified = datetime.fromtimestamp(float(stats.st_mtime), timezone.utc)
    return created, modified


def earliest(values: list[datetime]) -> datetime | None:
    return min(values) if values else None


def latest(values: list[datetime]) -> datetime | None:
    return max(values) if values else None
