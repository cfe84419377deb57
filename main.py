#!/usr/bin/env python3
"""7DTD Mod Installer - Entry Point"""

import argparse
import faulthandler
import logging
import os
import sys
import traceback
from logging.handlers import RotatingFileHandler
from pathlib import Path

APP_LOGGER_NAME = "7dtdmodinstaller"
LOG_DIR_NAME = "7DTDModInstaller"
LOG_FILE_NAME = "7dtdmodinstaller.log"
CRASH_FILE_NAME = "crash.log"
LOG_MAX_BYTES = 1 * 1024 * 1024  # 1 MB
LOG_BACKUP_COUNT = 2


def default_log_dir() -> Path:
    return Path(os.environ.get("APPDATA", "~")).expanduser() / LOG_DIR_NAME


def setup_logging(log_dir: Path | None = None) -> tuple[logging.Logger, Path]:
    """Send every logger in the process to one rotating file.

    The handler goes on the root logger: window and worker lines arrive on the
    ``7dtdmodinstaller`` logger, while ``mod_manager``, ``copier``,
    ``archive_extractor`` and ``manifest_schema`` log diagnostics under their
    module names.  Returns the application logger and the log folder.
    """
    log_dir = log_dir or default_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter("%(asctime)s  %(levelname)-8s  %(name)s: %(message)s")
    )

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    return logging.getLogger(APP_LOGGER_NAME), log_dir


def install_crash_handler(logger: logging.Logger, log_dir: Path):
    def log_unhandled(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logger.critical(
            "Unhandled exception:\n%s",
            "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
        )

    sys.excepthook = log_unhandled

    # Hard crashes bypass logging; faulthandler dumps every thread's stack here
    faulthandler.enable(open(log_dir / CRASH_FILE_NAME, "w"), all_threads=True)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="7 Days To Die Mod Installer")
    parser.add_argument("--game-dir", help="Folder containing 7DaysToDie.exe")
    parser.add_argument(
        "--log-dir",
        type=Path,
        help=f"Where {LOG_FILE_NAME} and {CRASH_FILE_NAME} go (default: %%APPDATA%%/{LOG_DIR_NAME})",
    )
    parser.add_argument("--settings-org", default="7DTDModInstaller")
    parser.add_argument("--settings-app", default="7DTDModInstaller")
    parser.add_argument(
        "--no-persist-settings",
        action="store_true",
        help="Do not save the picked game folder (sandbox runs)",
    )
    parser.add_argument("--window-title-suffix")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None):
    args = parse_args(argv)

    logger, log_dir = setup_logging(args.log_dir)
    install_crash_handler(logger, log_dir)
    logger.info("Starting 7DTD Mod Installer (logs in %s)", log_dir)

    from gui import main as run_gui
    run_gui(
        logger,
        game_dir_override=args.game_dir,
        settings_org=args.settings_org,
        settings_app=args.settings_app,
        persist_settings=not args.no_persist_settings,
        window_title_suffix=args.window_title_suffix,
    )


if __name__ == "__main__":
    main()
