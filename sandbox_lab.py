from __future__ import annotations

import argparse
import difflib
import json
import shutil
import subprocess
import sys
import zipfile
from dataclasses import dataclass
from pathlib import Path

from archive_extractor import MARKER_FILENAME
from manifest_schema import MANIFEST_FILENAME
from mod_manager import BACKUP_PREFIX, GAME_EXE_NAME, MODS_FOLDER, PROTECTED_DIR

REPO_ROOT = Path(__file__).resolve().parent
SANDBOX_ROOT = REPO_ROOT / "sandbox_envs"


@dataclass(frozen=True)
class SandboxEnvironment:
    name: str
    description: str


ENVIRONMENTS = [
    SandboxEnvironment(
        name="fresh_install",
        description="Game exe and Harmony only, no mods, no manifest, no backups.",
    ),
    SandboxEnvironment(
        name="with_mods",
        description="Two tool-installed mods plus one manual mod, manifest present.",
    ),
    SandboxEnvironment(
        name="missing_mod",
        description="Manifest lists a mod that has been deleted from Mods.",
    ),
    SandboxEnvironment(
        name="with_backup",
        description="Mods present and an existing ModsBackup_ snapshot ready to restore.",
    ),
]


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sandbox 7DTD Mod Installer GUI test environments")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser("build", help="Build sandbox environments")
    build_parser.add_argument("env", nargs="*", help="Specific environment names to build")
    build_parser.add_argument("--rebuild", action="store_true", help="Delete and recreate the selected environments")

    run_parser = subparsers.add_parser("run", help="Launch the app against a sandbox environment")
    run_parser.add_argument("env", help="Environment name to launch")
    run_parser.add_argument("--rebuild", action="store_true", help="Rebuild the environment before launch")

    subparsers.add_parser("list", help="List available sandbox environments")
    return parser.parse_args()


def unknown_environment_error(env_name: str) -> str:
    known = [env.name for env in ENVIRONMENTS]
    suggestion = difflib.get_close_matches(env_name, known, n=1, cutoff=0.6)
    if suggestion:
        return (
            f"Unknown sandbox environment: {env_name}\n"
            f"Did you mean: {suggestion[0]}?"
        )
    return (
        f"Unknown sandbox environment: {env_name}\n"
        f"Available environments: {', '.join(known)}"
    )


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_text(path: Path, text: str) -> None:
    ensure_parent(path)
    path.write_text(text, encoding="utf-8")


def mod_info_xml(name: str, version: str = "1.0") -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8" ?>\n'
        "<xml>\n"
        f'  <Name value="{name}" />\n'
        f'  <DisplayName value="{name}" />\n'
        f'  <Version value="{version}" />\n'
        "</xml>\n"
    )


def write_mod(mods_dir: Path, name: str, files: dict[str, str] | None = None) -> None:
    write_text(mods_dir / name / MARKER_FILENAME, mod_info_xml(name))
    for rel, text in (files or {}).items():
        write_text(mods_dir / name / rel, text)


def write_zip(path: Path, members: dict[str, bytes | str]) -> None:
    ensure_parent(path)
    with zipfile.ZipFile(path, "w") as zf:
        for member_name, data in members.items():
            payload = data.encode("utf-8") if isinstance(data, str) else data
            zf.writestr(member_name, payload)


def add_game_files(game_dir: Path) -> None:
    write_text(game_dir / GAME_EXE_NAME, "sandbox game executable\n")
    write_mod(game_dir / MODS_FOLDER, PROTECTED_DIR, {"Harmony/0Harmony.dll": "harmony"})


def create_sample_archives(downloads_dir: Path) -> None:
    write_zip(
        downloads_dir / "01 Single Mod.zip",
        {
            f"BetterBackpack/{MARKER_FILENAME}": mod_info_xml("BetterBackpack"),
            "BetterBackpack/Config/items.xml": "<configs />\n",
        },
    )
    write_zip(
        downloads_dir / "02 Modpack.zip",
        {
            f"Pack/Mods/ZombieLoot/{MARKER_FILENAME}": mod_info_xml("ZombieLoot"),
            "Pack/Mods/ZombieLoot/Config/loot.xml": "<configs />\n",
            f"Pack/Mods/QuietNights/{MARKER_FILENAME}": mod_info_xml("QuietNights"),
            "Pack/Mods/QuietNights/Config/sounds.xml": "<configs />\n",
            f"Pack/Mods/BetterBackpack/{MARKER_FILENAME}": mod_info_xml("BetterBackpack", "2.0"),
            "Pack/README.txt": "Drop the Mods folder into your game folder.\n",
        },
    )
    write_zip(
        downloads_dir / "03 Not A Mod.zip",
        {"readme.txt": "No ModInfo.xml in here.\n"},
    )
    write_zip(
        downloads_dir / "04 Root Level Mod.zip",
        {
            MARKER_FILENAME: mod_info_xml("RootLevelMod"),
            "Config/blocks.xml": "<configs />\n",
        },
    )


def write_manifest(mods_dir: Path, names: list[str]) -> None:
    write_text(mods_dir / MANIFEST_FILENAME, json.dumps({"Mods": sorted(names)}, indent=2))


def build_environment(env: SandboxEnvironment, rebuild: bool) -> Path:
    env_root = SANDBOX_ROOT / env.name
    if rebuild and env_root.exists():
        shutil.rmtree(env_root)

    downloads_dir = env_root / "downloads"
    game_dir = env_root / "game" / "7 Days To Die"
    mods_dir = game_dir / MODS_FOLDER
    create_sample_archives(downloads_dir)
    add_game_files(game_dir)

    if env.name in {"with_mods", "missing_mod", "with_backup"}:
        write_mod(mods_dir, "ZombieLoot", {"Config/loot.xml": "<configs />\n"})
        write_mod(mods_dir, "ManualMod", {"Config/ui.xml": "<configs />\n"})
        write_manifest(mods_dir, ["ZombieLoot", "QuietNights"])

    if env.name in {"with_mods", "with_backup"}:
        write_mod(mods_dir, "QuietNights", {"Config/sounds.xml": "<configs />\n"})

    if env.name == "with_backup":
        snapshot_mods = game_dir / f"{BACKUP_PREFIX}20240101_120000" / MODS_FOLDER
        write_mod(snapshot_mods, "OldFavourite", {"Config/old.xml": "<configs />\n"})
        write_mod(snapshot_mods, "ZombieLoot", {"Config/loot.xml": "<configs version='old' />\n"})

    return env_root


def build_selected_environments(selected: list[str], rebuild: bool) -> list[Path]:
    selected_names = set(selected)
    targets = [
        env for env in ENVIRONMENTS
        if not selected_names or env.name in selected_names
    ]
    if selected_names:
        known = {env.name for env in ENVIRONMENTS}
        unknown = sorted(selected_names - known)
        if unknown:
            if len(unknown) == 1:
                raise SystemExit(unknown_environment_error(unknown[0]))
            raise SystemExit(
                "Unknown sandbox environment(s): "
                + ", ".join(unknown)
                + "\nAvailable environments: "
                + ", ".join(env.name for env in ENVIRONMENTS)
            )
    return [build_environment(env, rebuild=rebuild) for env in targets]


def launch_environment(env_name: str, rebuild: bool) -> None:
    env_map = {env.name: env for env in ENVIRONMENTS}
    if env_name not in env_map:
        raise SystemExit(unknown_environment_error(env_name))

    env_root = build_environment(env_map[env_name], rebuild=rebuild)
    game_dir = env_root / "game" / "7 Days To Die"
    args = [
        sys.executable,
        str(REPO_ROOT / "main.py"),
        "--game-dir",
        str(game_dir),
        "--settings-app",
        f"7DTDModInstallerSandbox.{env_name}",
        "--no-persist-settings",
        "--window-title-suffix",
        f"[Sandbox: {env_name}]",
    ]
    subprocess.Popen(args, cwd=str(REPO_ROOT))


def main() -> int:
    args = parse_args()

    if args.command == "list":
        for env in ENVIRONMENTS:
            print(f"{env.name}: {env.description}")
        return 0

    if args.command == "build":
        built = build_selected_environments(args.env, rebuild=args.rebuild)
        for path in built:
            print(path)
        return 0

    if args.command == "run":
        launch_environment(args.env, rebuild=args.rebuild)
        return 0

    raise SystemExit(f"Unhandled command: {args.command}")


if __name__ == "__main__":
    raise SystemExit(main())
