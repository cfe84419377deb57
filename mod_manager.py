"""
7DTD Mod Installer - Core Logic

Backs up, installs, restores and verifies mods in a 7 Days To Die ``Mods``
folder.  Each operation is a plain method returning a result object; the GUI
runs them on a worker thread and receives log lines and progress through the
callbacks given to ``ModManager``.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path, PureWindowsPath
from typing import Callable, Optional

from archive_extractor import InvalidArchiveError, extract_mod_roots
from copier import CopyProgress, ProgressCallback, copy_tree, directory_size
from manifest_schema import ManifestNotFoundError, ManifestStore

GAME_EXE_NAME = "7DaysToDie.exe"
MODS_FOLDER = "Mods"
PROTECTED_DIR = "0_TFP_Harmony"
BACKUP_PREFIX = "ModsBackup_"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

_log = logging.getLogger(__name__)


class ModManagerError(Exception):
    """Base class for errors reported to the user as-is."""


class GameDirNotSetError(ModManagerError):
    pass


class InvalidBackupError(ModManagerError):
    pass


class OperationInProgressError(ModManagerError):
    pass


def is_protected(name: str) -> bool:
    return name.casefold() == PROTECTED_DIR.casefold()


def is_game_executable(path: str | Path) -> bool:
    # PureWindowsPath splits on both separators, so C:\ paths work on any host
    return PureWindowsPath(path).name.casefold() == GAME_EXE_NAME.casefold()


# ── Results ───────────────────────────────────────────────────────────


@dataclass
class BackupResult:
    snapshot_dir: Optional[Path]
    backed_up: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return True

    @property
    def message(self) -> str:
        if self.snapshot_dir is None:
            return f"No mods (other than {PROTECTED_DIR}) found – nothing to back up."
        return f"Backed up {len(self.backed_up)} mod(s) → {self.snapshot_dir}"


@dataclass
class InstallResult:
    archive: Path
    installed: list[str] = field(default_factory=list)
    replaced: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return True

    @property
    def message(self) -> str:
        msg = f"Install complete. {len(self.installed)} mod(s) added."
        if self.replaced:
            msg += f" Replaced: {', '.join(self.replaced)}"
        return msg


@dataclass
class RestoreResult:
    snapshot_dir: Path
    removed: list[str] = field(default_factory=list)
    restored: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return True

    @property
    def message(self) -> str:
        return f"Restore complete. {len(self.restored)} mod(s) restored from {self.snapshot_dir.name}."


@dataclass
class VerifyResult:
    # None when no manifest has been written yet
    status: Optional[dict[str, bool]] = None

    @property
    def manifest_found(self) -> bool:
        return self.status is not None

    @property
    def missing(self) -> list[str]:
        if not self.status:
            return []
        return sorted(name for name, present in self.status.items() if not present)

    @property
    def success(self) -> bool:
        return not self.missing

    @property
    def message(self) -> str:
        if not self.manifest_found:
            return "No manifest found – install mods with this tool first."
        if self.missing:
            return f"Integrity FAILED – missing: {', '.join(self.missing)}"
        return f"Integrity OK – all {len(self.status)} mod(s) present."


# ── Manager ───────────────────────────────────────────────────────────


class ModManager:
    """
    Operation orchestrator for one game installation.

    Workflow:
        1. backup_mods() to move the current mods into a timestamped snapshot
        2. install_archive() to install every mod found in an archive
        3. restore_backup() to replace the current mods with a snapshot
        4. verify_integrity() to check the manifest against the Mods folder

    Only one operation runs at a time; starting another while one is running
    raises ``OperationInProgressError``.
    """

    def __init__(
        self,
        game_dir: str | Path,
        log_callback: Optional[Callable[[str], None]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        if not game_dir:
            raise GameDirNotSetError(f"Pick your {GAME_EXE_NAME} first.")
        self.game_dir = Path(game_dir)
        self.mods_dir = self.game_dir / MODS_FOLDER
        self.manifest = ManifestStore(self.mods_dir)
        self._log_cb = log_callback or print
        self._progress_cb = progress_callback
        self._op_lock = threading.Lock()

    # ── Logging / Progress ────────────────────────────────────────────

    def log(self, msg: str):
        self._log_cb(msg)

    def _new_progress(self, sources: list[Path], phase: str) -> CopyProgress:
        total = sum(directory_size(src) for src in sources)
        return CopyProgress(total, phase, self._progress_cb)

    @contextmanager
    def _exclusive(self, operation: str):
        if not self._op_lock.acquire(blocking=False):
            raise OperationInProgressError(
                f"Cannot start {operation}: another operation is still running."
            )
        try:
            _log.debug("Starting %s in %s", operation, self.game_dir)
            yield
        finally:
            self._op_lock.release()

    @property
    def busy(self) -> bool:
        return self._op_lock.locked()

    # ── Paths ─────────────────────────────────────────────────────────

    def ensure_mods_dir(self) -> Path:
        self.mods_dir.mkdir(parents=True, exist_ok=True)
        return self.mods_dir

    def list_mods(self) -> list[Path]:
        """Mod directories in the Mods folder, excluding the protected one."""
        if not self.mods_dir.is_dir():
            return []
        return sorted(
            (d for d in self.mods_dir.iterdir() if d.is_dir() and not is_protected(d.name)),
            key=lambda d: d.name,
        )

    def list_backups(self) -> list[Path]:
        """Snapshot folders next to the Mods folder, newest first."""
        if not self.game_dir.is_dir():
            return []
        backups = [
            d for d in self.game_dir.glob(f"{BACKUP_PREFIX}*")
            if d.is_dir() and (d / MODS_FOLDER).is_dir()
        ]
        backups.sort(key=lambda d: d.name, reverse=True)
        return backups

    def _new_snapshot_dir(self) -> Path:
        stamp = datetime.now().strftime(BACKUP_TIMESTAMP_FORMAT)
        snapshot = self.game_dir / f"{BACKUP_PREFIX}{stamp}"

        # Two backups within the same second must not share a snapshot
        counter = 1
        while snapshot.exists():
            snapshot = self.game_dir / f"{BACKUP_PREFIX}{stamp}_{counter}"
            counter += 1

        (snapshot / MODS_FOLDER).mkdir(parents=True)
        return snapshot

    # ── Backup ────────────────────────────────────────────────────────

    def backup_mods(self) -> BackupResult:
        with self._exclusive("backup"):
            sources = self.list_mods()
            if not sources:
                self.log(f"No mods (other than {PROTECTED_DIR}) found – nothing to back up.")
                return BackupResult(snapshot_dir=None)

            snapshot = self._new_snapshot_dir()
            backup_mods_dir = snapshot / MODS_FOLDER
            self.log(f"Backing up {len(sources)} mod(s) to {snapshot}...")

            progress = self._new_progress(sources, "Backing up")
            result = BackupResult(snapshot_dir=snapshot)
            for folder in sources:
                copy_tree(folder, backup_mods_dir / folder.name, progress)
                shutil.rmtree(folder)
                result.backed_up.append(folder.name)
                self.log(f"  Backed up {folder.name}")

            self.log(f"Backup complete → {snapshot}")
            return result

    # ── Install ───────────────────────────────────────────────────────

    def _plan_install(self, roots: list[Path], scratch: Path, archive: Path) -> dict[str, Path]:
        plan: dict[str, Path] = {}
        for root in roots:
            # ModInfo.xml at the archive's top level: name the mod after the archive
            name = archive.stem if root == scratch else root.name
            if is_protected(name):
                self.log(f"  WARNING: Skipping {name} – {PROTECTED_DIR} is never installed over")
                continue
            if name in plan:
                self.log(
                    f"  WARNING: Archive contains more than one '{name}' mod; "
                    f"using {root.relative_to(scratch).as_posix() or '.'}"
                )
            plan[name] = root
        return plan

    def install_archive(self, archive_path: str | Path) -> InstallResult:
        archive = Path(archive_path)
        if not archive.is_file():
            raise FileNotFoundError(f"Archive not found: {archive}")

        with self._exclusive("install"):
            self.log(f"Installing mods from {archive.name}...")

            with tempfile.TemporaryDirectory(prefix="7dtm_") as tmpdir:
                scratch = Path(tmpdir)
                roots = extract_mod_roots(archive, scratch, self._progress_cb)
                plan = self._plan_install(roots, scratch, archive)
                if not plan:
                    raise InvalidArchiveError(
                        f"{archive.name} only contains {PROTECTED_DIR}, nothing to install."
                    )

                self.ensure_mods_dir()
                progress = self._new_progress(list(plan.values()), "Installing")
                result = InstallResult(archive=archive)

                for name, src in plan.items():
                    dest = self.mods_dir / name
                    if dest.is_dir():
                        shutil.rmtree(dest)
                        result.replaced.append(name)
                    elif dest.exists():
                        dest.unlink()
                        result.replaced.append(name)
                    copy_tree(src, dest, progress)
                    result.installed.append(name)
                    self.log(f"  Installed {name}")

                # Full replace: mods from earlier installs drop out of the manifest
                self.manifest.write(result.installed)

            self.log(f"Install complete. {len(result.installed)} mod(s) added.")
            return result

    # ── Restore ───────────────────────────────────────────────────────

    def restore_backup(self, snapshot_dir: str | Path) -> RestoreResult:
        snapshot = Path(snapshot_dir)
        backup_mods_dir = snapshot / MODS_FOLDER

        with self._exclusive("restore"):
            if not backup_mods_dir.is_dir():
                raise InvalidBackupError(
                    f"Selected folder doesn't contain a {MODS_FOLDER} sub-folder: {snapshot}"
                )
            if self.mods_dir.exists():
                live = self.mods_dir.resolve()
                picked = backup_mods_dir.resolve()
                if picked == live:
                    raise InvalidBackupError(
                        "Selected folder is the game folder itself, not a ModsBackup_ folder."
                    )
                # The sweep below would delete the snapshot before it is copied
                if live in picked.parents:
                    raise InvalidBackupError(
                        f"Selected folder is inside {self.mods_dir}; pick a ModsBackup_ folder."
                    )

            sources = sorted(
                (d for d in backup_mods_dir.iterdir() if d.is_dir() and not is_protected(d.name)),
                key=lambda d: d.name,
            )
            self.log(f"Restoring {len(sources)} mod(s) from {snapshot}...")

            result = RestoreResult(snapshot_dir=snapshot)
            for folder in self.list_mods():
                shutil.rmtree(folder)
                result.removed.append(folder.name)
                self.log(f"  Removed {folder.name}")

            self.ensure_mods_dir()
            progress = self._new_progress(sources, "Restoring")
            for src in sources:
                copy_tree(src, self.mods_dir / src.name, progress)
                result.restored.append(src.name)
                self.log(f"  Restored {src.name}")

            self.log("Restore complete.")
            return result

    # ── Verify ────────────────────────────────────────────────────────

    def verify_integrity(self) -> VerifyResult:
        with self._exclusive("verify"):
            try:
                status = self.manifest.verify()
            except ManifestNotFoundError:
                self.log("No manifest found – install mods with this tool first.")
                return VerifyResult(status=None)

            result = VerifyResult(status=status)
            for name, present in status.items():
                self.log(f"  {name}: {'present' if present else 'MISSING'}")
            self.log(result.message)
            return result

    # ── Validation ────────────────────────────────────────────────────

    def validate_paths(self) -> list[str]:
        issues = []

        if not self.game_dir.exists():
            issues.append(f"Game directory does not exist: {self.game_dir}")
            return issues

        if not (self.game_dir / GAME_EXE_NAME).exists():
            issues.append(f"{GAME_EXE_NAME} not found in {self.game_dir}")

        if not self.mods_dir.exists():
            issues.append(
                f"Mods directory does not exist: {self.mods_dir} "
                f"(will be created on first install)"
            )

        return issues
