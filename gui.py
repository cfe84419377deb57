"""
7DTD Mod Installer - GUI (PySide6)
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QThread, Signal, QSettings
from PySide6.QtGui import QFont
from PySide6.QtWidgets import (
    QApplication,
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPlainTextEdit,
    QProgressBar,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from archive_extractor import SUPPORTED_EXTENSIONS
from mod_manager import (
    BACKUP_PREFIX,
    GAME_EXE_NAME,
    PROTECTED_DIR,
    ModManager,
    is_game_executable,
)

# ── Default Paths ─────────────────────────────────────────────────────

VANILLA_HINT = r"C:\Steam\steamapps\common"
DEFAULT_GAME_DIR = ""  # User must pick the game exe


def format_log_line(msg: str, now: Optional[datetime] = None) -> str:
    """Prefix a log-pane line with the time it was logged."""
    stamp = (now or datetime.now()).strftime("%H:%M:%S")
    return f"[{stamp}] {msg}"


# ── Worker Thread ─────────────────────────────────────────────────────

class WorkerThread(QThread):
    """Run a blocking operation off the main thread."""

    finished_signal = Signal(bool, str)  # success, message

    def __init__(self, func, *args, **kwargs):
        super().__init__()
        self.func = func
        self.args = args
        self.kwargs = kwargs
        self._logger = logging.getLogger("7dtdmodinstaller")

    def run(self):
        try:
            result = self.func(*self.args, **self.kwargs)
            self.finished_signal.emit(result.success, result.message)
        except Exception as e:
            self._logger.exception("Operation %s failed", self.func.__name__)
            self.finished_signal.emit(False, str(e))


# ── Main Window ───────────────────────────────────────────────────────

class MainWindow(QMainWindow):
    # Signals used to hand log lines and progress from the worker thread to
    # the UI thread. Qt queues cross-thread emissions automatically.
    _log_message = Signal(str)
    _progress_update = Signal(int, str)

    def __init__(
        self,
        logger: logging.Logger | None = None,
        *,
        game_dir_override: str | None = None,
        settings_org: str = "7DTDModInstaller",
        settings_app: str = "7DTDModInstaller",
        persist_settings: bool = True,
        window_title_suffix: str | None = None,
    ):
        super().__init__()
        self._logger = logger or logging.getLogger("7dtdmodinstaller")
        title = "7DTD Mod-Installer"
        if window_title_suffix:
            title += f" {window_title_suffix}"
        self.setWindowTitle(title)
        self.setMinimumSize(720, 440)

        # Settings persistence
        self._persist_settings = persist_settings
        self.settings = QSettings(settings_org, settings_app)
        stored_game_dir = self.settings.value("game_dir", DEFAULT_GAME_DIR, type=str)
        self.game_dir = game_dir_override if game_dir_override is not None else stored_game_dir
        self.manager: Optional[ModManager] = None
        self.worker: Optional[WorkerThread] = None

        self._build_ui()
        self._log_message.connect(self.log_text.appendPlainText)
        self._progress_update.connect(self._on_progress)
        self._try_init_manager()

    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QVBoxLayout(central)

        body = QHBoxLayout()

        # ── Left: action buttons ──────────────────────────────────────
        actions = QVBoxLayout()

        self.pick_btn = QPushButton(f"① Pick {GAME_EXE_NAME}")
        self.pick_btn.clicked.connect(self._pick_game_exe)
        actions.addWidget(self.pick_btn)

        self.backup_btn = QPushButton("② Backup Mods")
        self.backup_btn.clicked.connect(self._backup_mods)
        actions.addWidget(self.backup_btn)

        self.install_btn = QPushButton("③ Install Mods…")
        self.install_btn.clicked.connect(self._install_mods)
        actions.addWidget(self.install_btn)

        self.restore_btn = QPushButton("④ Restore Backup…")
        self.restore_btn.clicked.connect(self._restore_backup)
        actions.addWidget(self.restore_btn)

        self.verify_btn = QPushButton("⑤ Verify Integrity")
        self.verify_btn.clicked.connect(self._verify_integrity)
        actions.addWidget(self.verify_btn)

        self.open_mods_btn = QPushButton("📂 Open Mods Folder")
        self.open_mods_btn.clicked.connect(self._open_mods_folder)
        actions.addWidget(self.open_mods_btn)

        for btn in self._operation_buttons():
            btn.setMinimumHeight(35)
            btn.setMinimumWidth(220)

        actions.addStretch()

        self.status_label = QLabel()
        self.status_label.setWordWrap(True)
        actions.addWidget(self.status_label)

        body.addLayout(actions)

        # ── Right: log ────────────────────────────────────────────────
        log_layout = QVBoxLayout()
        log_layout.addWidget(QLabel("<b>Log</b>"))

        self.log_text = QPlainTextEdit()
        self.log_text.setReadOnly(True)
        self.log_text.setFont(QFont("Consolas", 9))
        self.log_text.setMaximumBlockCount(5000)
        log_layout.addWidget(self.log_text, 1)

        body.addLayout(log_layout, 1)
        main_layout.addLayout(body, 1)

        # ── Progress bar ──────────────────────────────────────────────
        self.progress = QProgressBar()
        self.progress.setRange(0, 100)
        self.progress.setVisible(False)
        main_layout.addWidget(self.progress)

    def _operation_buttons(self) -> list[QPushButton]:
        return [
            self.pick_btn,
            self.backup_btn,
            self.install_btn,
            self.restore_btn,
            self.verify_btn,
            self.open_mods_btn,
        ]

    # ── Manager Init ──────────────────────────────────────────────────

    def _try_init_manager(self, create_mods_dir: bool = False):
        self.manager = None

        if not self.game_dir:
            self._append_log(
                f"Ready. Pick your {GAME_EXE_NAME} to begin.\n"
                f"Hint: {Path(VANILLA_HINT) / '7 Days To Die'}"
            )
            self.status_label.setText("Not configured")
            return

        self.manager = ModManager(
            game_dir=self.game_dir,
            log_callback=self._append_log,
            progress_callback=self._report_progress,
        )
        self._append_log(f"Game folder set to: {self.game_dir}")
        if create_mods_dir:
            self.manager.ensure_mods_dir()

        issues = self.manager.validate_paths()
        for issue in issues:
            self._append_log(f"Warning: {issue}")
        if not self.manager.game_dir.is_dir():
            self.status_label.setText("Path issues")
            return

        backups = self.manager.list_backups()
        if backups:
            self._append_log(f"{len(backups)} backup(s) found, latest: {backups[0].name}")

        self.status_label.setText("Ready")

    # ── Logging / Progress ────────────────────────────────────────────

    def _append_log(self, msg: str):
        self._logger.info(msg)
        self._log_message.emit(format_log_line(msg))  # thread-safe: Qt queues this to the main thread

    def _report_progress(self, percent: int, phase: str):
        self._progress_update.emit(percent, phase)

    def _on_progress(self, percent: int, phase: str):
        self.progress.setValue(percent)
        self.progress.setFormat(f"{phase}… %p%")
        self.status_label.setText(f"{phase}…")

    # ── Precondition ──────────────────────────────────────────────────

    def _check_game_dir(self) -> bool:
        if self.manager is None:
            QMessageBox.warning(
                self,
                "Game folder not set",
                f"Pick your {GAME_EXE_NAME} first.",
            )
            return False
        return True

    # ── ① Pick game EXE ───────────────────────────────────────────────

    def _pick_game_exe(self):
        start_dir = self.game_dir or VANILLA_HINT
        path, _ = QFileDialog.getOpenFileName(
            self,
            f"Locate {GAME_EXE_NAME}",
            start_dir,
            f"7DTD executable ({GAME_EXE_NAME});;All files (*)",
        )
        if not path:
            return

        if not is_game_executable(path):
            QMessageBox.critical(
                self, "Wrong file", f"That isn’t {GAME_EXE_NAME}."
            )
            return

        self.game_dir = str(Path(path).parent)
        if self._persist_settings:
            self.settings.setValue("game_dir", self.game_dir)

        self._try_init_manager(create_mods_dir=True)

    # ── ② Backup ──────────────────────────────────────────────────────

    def _backup_mods(self):
        if not self._check_game_dir():
            return
        self._run_in_worker(self.manager.backup_mods)

    # ── ③ Install ─────────────────────────────────────────────────────

    def _install_mods(self):
        if not self._check_game_dir():
            return

        patterns = " ".join(f"*{ext}" for ext in sorted(SUPPORTED_EXTENSIONS))
        path, _ = QFileDialog.getOpenFileName(
            self,
            "Select mod or modpack archive",
            "",
            f"Mod archives ({patterns});;ZIP archives (*.zip)",
        )
        if not path:
            return

        self._run_in_worker(self.manager.install_archive, path)

    # ── ④ Restore ─────────────────────────────────────────────────────

    def _restore_backup(self):
        if not self._check_game_dir():
            return

        backups = self.manager.list_backups()
        start_dir = str(backups[0]) if backups else str(self.manager.game_dir)
        path = QFileDialog.getExistingDirectory(
            self, f"Pick the {BACKUP_PREFIX}xxxxx folder to restore", start_dir
        )
        if not path:
            return

        reply = QMessageBox.question(
            self,
            "Confirm Restore",
            f"Restore mods from '{Path(path).name}'?\n\n"
            f"Every folder in {self.manager.mods_dir} except {PROTECTED_DIR} "
            "will be deleted first.",
            QMessageBox.Yes | QMessageBox.No,
        )
        if reply != QMessageBox.Yes:
            return

        self._run_in_worker(self.manager.restore_backup, path)

    # ── ⑤ Verify ──────────────────────────────────────────────────────

    def _verify_integrity(self):
        if not self._check_game_dir():
            return
        self._run_in_worker(self.manager.verify_integrity)

    # ── Worker Thread Management ──────────────────────────────────────

    def _run_in_worker(self, func, *args, **kwargs):
        self._set_busy(True)

        self.worker = WorkerThread(func, *args, **kwargs)
        self.worker.finished_signal.connect(self._on_worker_finished)
        self.worker.start()

    def _on_worker_finished(self, success: bool, message: str):
        self._set_busy(False)

        if success:
            self._append_log(f"✅ {message}")
        else:
            self._append_log(f"❌ {message}")
            QMessageBox.warning(self, "Operation Failed", message)

    def _set_busy(self, busy: bool):
        self.progress.setValue(0)
        self.progress.setVisible(busy)
        self.status_label.setText("Working..." if busy else "Ready")
        for btn in self._operation_buttons():
            btn.setEnabled(not busy)

    # ── Open Mods Folder ──────────────────────────────────────────────

    def _open_mods_folder(self):
        if self.manager and self.manager.mods_dir.exists():
            import subprocess as sp

            mods_path = str(self.manager.mods_dir)
            if sys.platform == "win32":
                os.startfile(mods_path)
            elif sys.platform == "linux":
                sp.Popen(["xdg-open", mods_path])
            elif sys.platform == "darwin":
                sp.Popen(["open", mods_path])
        else:
            QMessageBox.warning(
                self, "Not Found", "Mods folder is not set or does not exist."
            )

    # ── Close ─────────────────────────────────────────────────────────

    def closeEvent(self, event):
        if self.worker and self.worker.isRunning():
            reply = QMessageBox.question(
                self,
                "Operation in Progress",
                "An operation is still running. Quit anyway?",
                QMessageBox.Yes | QMessageBox.No,
            )
            if reply != QMessageBox.Yes:
                event.ignore()
                return
        event.accept()


# ── Entry Point ───────────────────────────────────────────────────────

def main(
    logger: logging.Logger | None = None,
    *,
    game_dir_override: str | None = None,
    settings_org: str = "7DTDModInstaller",
    settings_app: str = "7DTDModInstaller",
    persist_settings: bool = True,
    window_title_suffix: str | None = None,
):
    app = QApplication(sys.argv)
    app.setStyle("Fusion")

    window = MainWindow(
        logger=logger,
        game_dir_override=game_dir_override,
        settings_org=settings_org,
        settings_app=settings_app,
        persist_settings=persist_settings,
        window_title_suffix=window_title_suffix,
    )
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
