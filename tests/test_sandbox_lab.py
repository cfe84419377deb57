"""
Tests for the sandbox environment builder.
"""

import json

import pytest

import sandbox_lab
from manifest_schema import MANIFEST_FILENAME
from mod_manager import GAME_EXE_NAME, MODS_FOLDER, PROTECTED_DIR, ModManager


@pytest.fixture
def sandbox_root(tmp_path, monkeypatch):
    monkeypatch.setattr(sandbox_lab, "SANDBOX_ROOT", tmp_path / "sandbox_envs")
    return tmp_path / "sandbox_envs"


def env_named(name):
    return next(env for env in sandbox_lab.ENVIRONMENTS if env.name == name)


def test_fresh_install_has_only_game_files(sandbox_root):
    env_root = sandbox_lab.build_environment(env_named("fresh_install"), rebuild=False)

    game_dir = env_root / "game" / "7 Days To Die"
    assert (game_dir / GAME_EXE_NAME).is_file()
    assert [d.name for d in (game_dir / MODS_FOLDER).iterdir()] == [PROTECTED_DIR]
    assert len(list((env_root / "downloads").glob("*.zip"))) == 4


def test_missing_mod_environment_fails_verify(sandbox_root):
    env_root = sandbox_lab.build_environment(env_named("missing_mod"), rebuild=False)
    game_dir = env_root / "game" / "7 Days To Die"
    manifest = json.loads((game_dir / MODS_FOLDER / MANIFEST_FILENAME).read_text(encoding="utf-8"))

    result = ModManager(game_dir, log_callback=lambda _: None).verify_integrity()

    assert manifest == {"Mods": ["QuietNights", "ZombieLoot"]}
    assert result.missing == ["QuietNights"]


def test_with_backup_environment_is_restorable(sandbox_root):
    env_root = sandbox_lab.build_environment(env_named("with_backup"), rebuild=False)
    manager = ModManager(env_root / "game" / "7 Days To Die", log_callback=lambda _: None)

    backups = manager.list_backups()

    assert len(backups) == 1
    assert manager.restore_backup(backups[0]).restored == ["OldFavourite", "ZombieLoot"]


def test_rebuild_discards_previous_state(sandbox_root):
    env = env_named("fresh_install")
    env_root = sandbox_lab.build_environment(env, rebuild=False)
    stray = env_root / "game" / "7 Days To Die" / MODS_FOLDER / "Stray"
    stray.mkdir()

    sandbox_lab.build_environment(env, rebuild=True)

    assert not stray.exists()


def test_unknown_environment_suggests_close_match():
    assert "Did you mean: with_mods?" in sandbox_lab.unknown_environment_error("with_mod")
