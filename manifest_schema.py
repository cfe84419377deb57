"""
Install manifest for 7DTD Mod Installer.

Every successful install writes ``manifest7dtm.json`` into the game's Mods
folder, listing the mod directories that install put there.  The file is
replaced wholesale on each install (it is never merged with the previous
one), and Verify Integrity checks each listed name against the Mods folder.

File format
-----------

{
  "Mods": [
    "ModA",
    "ModB"
  ]
}

Unknown keys are ignored; a missing or null ``Mods`` key reads as an empty
list.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

MANIFEST_FILENAME = "manifest7dtm.json"

_log = logging.getLogger(__name__)


class ManifestNotFoundError(FileNotFoundError):
    """No manifest has been written to this Mods folder yet."""


class ManifestCorruptError(ValueError):
    """The manifest exists but is not valid JSON or does not match the schema."""


class InstallManifest(BaseModel):
    """Parsed contents of a manifest7dtm.json file."""

    model_config = ConfigDict(populate_by_name=True)

    mods: list[str] = Field(default_factory=list, alias="Mods")

    @field_validator("mods", mode="before")
    @classmethod
    def _null_is_empty(cls, v):
        return [] if v is None else v

    @field_validator("mods")
    @classmethod
    def _plain_names(cls, v: list[str]) -> list[str]:
        for name in v:
            if not name or name in (".", "..") or "/" in name or "\\" in name:
                raise ValueError(f"Invalid mod name in manifest: {name!r}")
        return v


def parse_manifest(data: bytes | str) -> InstallManifest:
    """Parse raw JSON into an InstallManifest.

    Raises ``pydantic.ValidationError`` if the data is invalid.
    Raises ``json.JSONDecodeError`` if the bytes are not valid JSON.
    """
    return InstallManifest.model_validate(json.loads(data))


class ManifestStore:
    """Reads and writes the manifest of one Mods folder."""

    def __init__(self, mods_dir: str | Path):
        self.mods_dir = Path(mods_dir)
        self.path = self.mods_dir / MANIFEST_FILENAME

    def exists(self) -> bool:
        return self.path.is_file()

    def write(self, names: Iterable[str]) -> InstallManifest:
        """Replace the manifest with ``names``, sorted and deduplicated."""
        manifest = InstallManifest(mods=sorted(set(names)))
        self.path.write_text(
            json.dumps(manifest.model_dump(by_alias=True), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        _log.debug("Wrote manifest with %d mod(s) to %s", len(manifest.mods), self.path)
        return manifest

    def read(self) -> set[str]:
        if not self.exists():
            raise ManifestNotFoundError(f"No manifest found at {self.path}")
        try:
            manifest = parse_manifest(self.path.read_bytes())
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
            raise ManifestCorruptError(f"Manifest {self.path} is malformed: {e}") from e
        return set(manifest.mods)

    def verify(self) -> dict[str, bool]:
        """Map every manifest entry to whether ``<mods_dir>/<name>`` is a directory."""
        return {name: (self.mods_dir / name).is_dir() for name in sorted(self.read())}
