"""
Tests for archive extraction and ModInfo.xml discovery.
"""

import pytest

from archive_extractor import (
    MARKER_FILENAME,
    InvalidArchiveError,
    extract_archive,
    extract_mod_roots,
    find_mod_roots,
)
from tests.conftest import make_7z, make_mod, make_zip


def test_extract_reports_byte_progress(tmp_path):
    archive = make_zip(
        tmp_path / "pack.zip",
        {
            "ModA/ModInfo.xml": "<xml />",
            "ModA/Config/items.xml": "x" * 93,
            "ModB/ModInfo.xml": "<xml />",
        },
    )
    events = []

    total = extract_archive(archive, tmp_path / "out", lambda p, phase: events.append((p, phase)))

    assert total == 7 + 93 + 7
    assert (tmp_path / "out" / "ModA" / "Config" / "items.xml").read_text() == "x" * 93
    assert events[-1] == (100, "Extracting")
    assert all(p <= 100 for p, _ in events)
    assert len(events) == 3


def test_extract_overwrites_existing_files(tmp_path):
    archive = make_zip(tmp_path / "mod.zip", {"ModA/ModInfo.xml": "new"})
    existing = tmp_path / "out" / "ModA" / "ModInfo.xml"
    existing.parent.mkdir(parents=True)
    existing.write_text("old contents")

    extract_archive(archive, tmp_path / "out")

    assert existing.read_text() == "new"


def test_unsupported_extension(tmp_path):
    archive = tmp_path / "mod.tar.gz"
    archive.write_bytes(b"whatever")
    with pytest.raises(ValueError, match="Unsupported archive format"):
        extract_archive(archive, tmp_path / "out")


def test_corrupt_zip_is_invalid_archive(tmp_path):
    archive = tmp_path / "broken.zip"
    archive.write_bytes(b"this is not a zip file")
    with pytest.raises(InvalidArchiveError):
        extract_archive(archive, tmp_path / "out")


def test_extract_7z_pack(tmp_path):
    staging = tmp_path / "staging"
    make_mod(staging / "Pack" / "Mods", "SevenMod", {"Config/items.xml": "x" * 50})
    make_mod(staging / "Pack" / "Mods", "OtherMod")
    archive = make_7z(tmp_path / "pack.7z", staging)
    scratch = tmp_path / "scratch"
    events = []

    roots = extract_mod_roots(archive, scratch, lambda p, phase: events.append((p, phase)))

    assert [r.name for r in roots] == ["OtherMod", "SevenMod"]
    assert (scratch / "Pack" / "Mods" / "SevenMod" / "Config" / "items.xml").read_text() == "x" * 50
    assert events[-1] == (100, "Extracting")


@pytest.mark.parametrize("name", ["broken.7z", "broken.rar"])
def test_corrupt_7z_and_rar_are_invalid_archives(tmp_path, name):
    archive = tmp_path / name
    archive.write_bytes(b"this is not an archive at all")
    with pytest.raises(InvalidArchiveError):
        extract_archive(archive, tmp_path / "out")


def test_find_mod_roots_any_depth(tmp_path):
    archive = make_zip(
        tmp_path / "pack.zip",
        {
            "Pack/Mods/ZombieLoot/ModInfo.xml": "<xml />",
            "Pack/Mods/ZombieLoot/Config/loot.xml": "<loot />",
            "Pack/Mods/QuietNights/ModInfo.xml": "<xml />",
            "Pack/README.txt": "hello",
            "Other/deeper/still/Solo/ModInfo.xml": "<xml />",
        },
    )
    scratch = tmp_path / "scratch"

    roots = extract_mod_roots(archive, scratch)

    assert [r.relative_to(scratch).as_posix() for r in roots] == [
        "Other/deeper/still/Solo",
        "Pack/Mods/QuietNights",
        "Pack/Mods/ZombieLoot",
    ]


def test_find_mod_roots_keeps_nested_roots(tmp_path):
    (tmp_path / "Outer" / "Inner").mkdir(parents=True)
    (tmp_path / "Outer" / MARKER_FILENAME).write_text("<xml />")
    (tmp_path / "Outer" / "Inner" / MARKER_FILENAME).write_text("<xml />")

    roots = find_mod_roots(tmp_path)

    assert roots == [tmp_path / "Outer", tmp_path / "Outer" / "Inner"]


def test_find_mod_roots_ignores_directories_named_like_marker(tmp_path):
    (tmp_path / "Fake" / MARKER_FILENAME).mkdir(parents=True)
    assert find_mod_roots(tmp_path) == []


def test_marker_at_archive_root_returns_scratch_dir(tmp_path):
    archive = make_zip(tmp_path / "Solo.zip", {"ModInfo.xml": "<xml />", "Config/a.xml": "a"})
    scratch = tmp_path / "scratch"

    assert extract_mod_roots(archive, scratch) == [scratch]


def test_no_marker_is_invalid_archive(tmp_path):
    archive = make_zip(tmp_path / "junk.zip", {"readme.txt": "no mods here", "a/b.xml": "<b />"})
    with pytest.raises(InvalidArchiveError, match="No ModInfo.xml"):
        extract_mod_roots(archive, tmp_path / "scratch")
