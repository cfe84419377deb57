"""
Tests for the entry point's argument parsing and log setup.
"""

import logging

import pytest

import main


@pytest.fixture
def root_handlers():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_setup_logging_writes_module_loggers_to_file(tmp_path, root_handlers):
    logger, log_dir = main.setup_logging(tmp_path / "logs")

    logger.info("window line")
    logging.getLogger("mod_manager").debug("manager diagnostic")
    for handler in logging.getLogger().handlers:
        handler.flush()

    text = (log_dir / main.LOG_FILE_NAME).read_text(encoding="utf-8")
    assert logger.name == main.APP_LOGGER_NAME
    assert "7dtdmodinstaller: window line" in text
    assert "mod_manager: manager diagnostic" in text


def test_default_log_dir_uses_appdata(tmp_path, monkeypatch):
    monkeypatch.setenv("APPDATA", str(tmp_path))
    assert main.default_log_dir() == tmp_path / main.LOG_DIR_NAME


def test_parse_args_sandbox_flags(tmp_path):
    args = main.parse_args(
        [
            "--game-dir", str(tmp_path),
            "--log-dir", str(tmp_path / "logs"),
            "--settings-app", "Sandbox.fresh_install",
            "--no-persist-settings",
        ]
    )

    assert args.game_dir == str(tmp_path)
    assert args.log_dir == tmp_path / "logs"
    assert args.settings_app == "Sandbox.fresh_install"
    assert args.settings_org == "7DTDModInstaller"
    assert args.no_persist_settings
    assert args.window_title_suffix is None
