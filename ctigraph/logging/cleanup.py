"""Audit log rotation — keep only the newest session directories."""

from __future__ import annotations

import shutil
from pathlib import Path


def cleanup_old_sessions(log_dir: Path, max_sessions: int) -> int:
    """Delete the oldest session directories beyond *max_sessions*.

    Session directories start with ``YYYYMMDD_HHMMSS`` so name order is
    chronological. Returns the number of directories removed.
    """
    if not log_dir.is_dir():
        return 0

    dirs = sorted((d for d in log_dir.iterdir() if d.is_dir()), key=lambda d: d.name)
    excess = len(dirs) - max(max_sessions, 0)
    if excess <= 0:
        return 0

    for d in dirs[:excess]:
        shutil.rmtree(d, ignore_errors=True)
    return excess
