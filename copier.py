"""
7DTD Mod Installer - Progress-weighted directory copier.

A single logical operation (backup, install, restore) usually copies several
mod directories one after another.  The caller sizes all of them up front,
creates one ``CopyProgress`` for the whole operation and hands it to every
``copy_tree`` call, so the reported percentage covers the full operation
rather than restarting at 0 for each directory.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Callable, Optional

COPY_CHUNK_SIZE = 1024 * 1024  # 1 MiB

ProgressCallback = Callable[[int, str], None]  # (percent, phase)

_log = logging.getLogger(__name__)


def percent_complete(copied: int, total: int) -> int:
    """Integer percentage of ``copied`` over ``total``, clamped to 0..100."""
    percent = copied * 100 // max(1, total)
    return max(0, min(100, percent))


def directory_size(path: Path) -> int:
    """Total size in bytes of every file below ``path``."""
    return sum(f.stat().st_size for f in Path(path).rglob("*") if f.is_file())


class CopyProgress:
    """Running byte counter shared by every copy within one operation."""

    def __init__(
        self,
        total: int,
        phase: str,
        callback: Optional[ProgressCallback] = None,
    ):
        self.total = total
        self.phase = phase
        self.copied = 0
        self._callback = callback

    @property
    def percent(self) -> int:
        return percent_complete(self.copied, self.total)

    def advance(self, nbytes: int):
        self.copied += nbytes
        if self._callback:
            self._callback(self.percent, self.phase)


def _copy_file(src: Path, dst: Path, progress: Optional[CopyProgress]) -> int:
    written = 0
    with open(src, "rb") as fsrc, open(dst, "wb") as fdst:
        while chunk := fsrc.read(COPY_CHUNK_SIZE):
            fdst.write(chunk)
            written += len(chunk)
            if progress:
                progress.advance(len(chunk))
    shutil.copystat(src, dst)
    return written


def copy_tree(src: Path, dest: Path, progress: Optional[CopyProgress] = None) -> int:
    """Copy ``src`` into ``dest`` recursively, overwriting existing files.

    Relative paths are preserved, empty sub-directories included.  Returns the
    number of bytes copied.  Any read or write error propagates unchanged;
    files copied before the failure stay where they are.
    """
    src = Path(src)
    dest = Path(dest)
    if not src.exists():
        raise FileNotFoundError(f"Source directory does not exist: {src}")
    if not src.is_dir():
        raise NotADirectoryError(f"Source is not a directory: {src}")

    dest.mkdir(parents=True, exist_ok=True)
    copied = 0

    for path in sorted(src.rglob("*")):
        target = dest / path.relative_to(src)
        if path.is_dir():
            target.mkdir(parents=True, exist_ok=True)
            continue
        target.parent.mkdir(parents=True, exist_ok=True)
        copied += _copy_file(path, target, progress)

    if progress and progress.total == 0:
        # Empty trees write no chunks; report the phase at 0% once.
        progress.advance(0)

    _log.debug("Copied %d byte(s) from %s to %s", copied, src, dest)
    return copied
