"""Filesystem collaborator for backup and restore."""

from __future__ import annotations

from pathlib import Path
import shutil


def copy_file(src: str | Path, dst: str | Path) -> str | None:
    """Copy ``src`` over ``dst``; return an errno-style message on failure."""
    try:
        shutil.copyfile(src, dst)
    except OSError as exc:
        return str(exc)
    return None
