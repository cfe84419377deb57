"""
7DTD Mod Installer - Archive extraction and mod discovery.

A mod (or modpack) archive is unpacked into a scratch directory, then the
scratch tree is searched for mod roots: every directory, at any depth, that
contains a ``ModInfo.xml``.  That directory is the unit that gets installed,
so a pack shipping ``Pack/Mods/ModA/ModInfo.xml`` and
``Pack/Mods/ModB/ModInfo.xml`` installs ``ModA`` and ``ModB``.
"""

from __future__ import annotations

import logging
import sys
import zipfile
from pathlib import Path
from typing import Optional

import py7zr
import rarfile

from copier import CopyProgress, ProgressCallback

# Point rarfile at UnRAR.exe: _MEIPASS when frozen, assets/ in a checkout
if getattr(sys, "frozen", False):
    _unrar = Path(sys._MEIPASS) / "UnRAR.exe"
else:
    _unrar = Path(__file__).parent / "assets" / "UnRAR.exe"
if _unrar.exists():
    rarfile.UNRAR_TOOL = str(_unrar)

MARKER_FILENAME = "ModInfo.xml"
SUPPORTED_EXTENSIONS = {".zip", ".7z", ".rar"}
EXTRACT_PHASE = "Extracting"

_log = logging.getLogger(__name__)


class InvalidArchiveError(ValueError):
    """The archive is unreadable or contains no installable mod."""


# ── Extraction ────────────────────────────────────────────────────────


def _extract_zip(filepath: Path, dest: Path, progress: CopyProgress):
    with zipfile.ZipFile(filepath, "r") as zf:
        members = zf.infolist()
        progress.total = sum(m.file_size for m in members if not m.is_dir())
        for member in members:
            zf.extract(member, dest)
            if not member.is_dir():
                progress.advance(member.file_size)


def _extract_7z(filepath: Path, dest: Path, progress: CopyProgress):
    with py7zr.SevenZipFile(filepath, mode="r") as sz:
        members = sz.list()
        progress.total = sum(m.uncompressed for m in members if not m.is_directory)
    with py7zr.SevenZipFile(filepath, mode="r") as sz:
        sz.extractall(path=dest)
    progress.advance(progress.total)


def _extract_rar(filepath: Path, dest: Path, progress: CopyProgress):
    with rarfile.RarFile(filepath, "r") as rf:
        members = rf.infolist()
        progress.total = sum(m.file_size for m in members if not m.is_dir())
        for member in members:
            rf.extract(member, dest)
            if not member.is_dir():
                progress.advance(member.file_size)


def extract_archive(
    filepath: Path,
    dest: Path,
    progress_callback: Optional[ProgressCallback] = None,
) -> int:
    """Extract every entry of ``filepath`` into ``dest``.

    Existing files are overwritten.  Progress is reported as extracted bytes
    over the archive's total uncompressed size.  Returns that total.

    Raises ``ValueError`` for unsupported extensions and
    ``InvalidArchiveError`` when the archive itself cannot be read.
    """
    filepath = Path(filepath)
    dest = Path(dest)
    ext = filepath.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise ValueError(f"Unsupported archive format: {ext}")

    dest.mkdir(parents=True, exist_ok=True)
    progress = CopyProgress(0, EXTRACT_PHASE, progress_callback)

    try:
        if ext == ".zip":
            _extract_zip(filepath, dest, progress)
        elif ext == ".7z":
            _extract_7z(filepath, dest, progress)
        else:
            _extract_rar(filepath, dest, progress)
    except (zipfile.BadZipFile, py7zr.Bad7zFile, rarfile.Error) as e:
        raise InvalidArchiveError(f"Could not read {filepath.name}: {e}") from e

    _log.debug("Extracted %s (%d bytes) into %s", filepath.name, progress.total, dest)
    return progress.total


# ── Mod Discovery ─────────────────────────────────────────────────────


def find_mod_roots(root: Path) -> list[Path]:
    """Return every directory under ``root`` (``root`` included) holding a
    ``ModInfo.xml``, deduplicated and sorted."""
    roots = {
        marker.parent
        for marker in Path(root).rglob(MARKER_FILENAME)
        if marker.is_file()
    }
    return sorted(roots)


def extract_mod_roots(
    filepath: Path,
    scratch_dir: Path,
    progress_callback: Optional[ProgressCallback] = None,
) -> list[Path]:
    """Extract ``filepath`` into ``scratch_dir`` and return its mod roots.

    Raises ``InvalidArchiveError`` when no ``ModInfo.xml`` is found.  The
    scratch directory is left for the caller to remove.
    """
    extract_archive(filepath, scratch_dir, progress_callback)
    roots = find_mod_roots(scratch_dir)
    if not roots:
        raise InvalidArchiveError(
            f"No {MARKER_FILENAME} files found in {Path(filepath).name} – "
            "not a valid 7DTD mod or pack."
        )
    return roots
