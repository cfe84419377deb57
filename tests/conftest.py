"""
Shared fixtures and helpers for the 7DTD Mod Installer test suite.
"""

import zipfile
from pathlib import Path

import py7zr
import pytest

from archive_extractor import MARKER_FILENAME
from mod_manager import GAME_EXE_NAME, MODS_FOLDER, PROTECTED_DIR, ModManager


def make_zip(path: Path, members: dict[str, bytes | str]) -> Path:
    """Write a zip at ``path`` from {archive_path: content} and return it."""
    with zipfile.ZipFile(path, "w") as zf:
        for member, data in members.items():
            zf.writestr(member, data)
    return path


def make_7z(path: Path, source_dir: Path) -> Path:
    """Write a 7z at ``path`` holding the contents of ``source_dir``."""
    with py7zr.SevenZipFile(path, "w") as sz:
        for f in sorted(source_dir.rglob("*")):
            if f.is_file():
                sz.write(f, arcname=f.relative_to(source_dir).as_posix())
    return path


def make_mod(parent: Path, name: str, files: dict[str, bytes | str] | None = None) -> Path:
    """Create ``parent/name`` with a ModInfo.xml and the given extra files."""
    mod_dir = parent / name
    mod_dir.mkdir(parents=True, exist_ok=True)
    (mod_dir / MARKER_FILENAME).write_text(f'<xml><Name value="{name}" /></xml>', encoding="utf-8")
    for rel, data in (files or {}).items():
        target = mod_dir / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            data = data.encode("utf-8")
        target.write_bytes(data)
    return mod_dir


def tree_contents(root: Path) -> dict[str, bytes]:
    """Map every file below ``root`` (posix relative path) to its bytes."""
    return {
        f.relative_to(root).as_posix(): f.read_bytes()
        for f in sorted(root.rglob("*"))
        if f.is_file()
    }


@pytest.fixture
def game_dir(tmp_path):
    """A fake game folder: exe, Mods/ and the protected Harmony directory."""
    game = tmp_path / "7 Days To Die"
    game.mkdir()
    (game / GAME_EXE_NAME).write_bytes(b"exe")
    harmony = game / MODS_FOLDER / PROTECTED_DIR
    (harmony / "Harmony").mkdir(parents=True)
    (harmony / "Harmony" / "0Harmony.dll").write_bytes(b"harmony dll")
    (harmony / MARKER_FILENAME).write_text("<xml />", encoding="utf-8")
    return game


@pytest.fixture
def mods_dir(game_dir):
    return game_dir / MODS_FOLDER


@pytest.fixture
def progress_events():
    return []


@pytest.fixture
def log_lines():
    return []


@pytest.fixture
def manager(game_dir, progress_events, log_lines):
    return ModManager(
        game_dir,
        log_callback=log_lines.append,
        progress_callback=lambda percent, phase: progress_events.append((percent, phase)),
    )


@pytest.fixture
def scratch_root(tmp_path, monkeypatch):
    """Redirect tempfile so tests can check the scratch directory is removed."""
    import tempfile

    root = tmp_path / "scratch"
    root.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(root))
    return root
