"""A modpack directory: manifest.json, mods/ and the install cache."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, model_validator

from mcdex.env import McdexEnv
from mcdex.errors import CacheError, ManifestError, ModNotInPackError
from mcdex.metacache import MetaCache
from mcdex.models import ManifestFileEntry

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.json"
CACHE_FILENAME = ".mcdex.cache"


# --- Manifest schema ---

class _OrderedModel(BaseModel):
    """Remembers the key order of the JSON object it was parsed from."""
    model_config = ConfigDict(extra="allow")

    _key_order: list[str] = PrivateAttr(default_factory=list)

    @model_validator(mode="wrap")
    @classmethod
    def _remember_key_order(cls, data: Any, handler):
        model = handler(data)
        if isinstance(data, dict):
            model._key_order = list(data)
        return model

    def dump_ordered(self) -> dict[str, Any]:
        """Dump by alias, original keys first in their original order."""
        data = self.model_dump(by_alias=True, exclude_unset=True)
        ordered = {key: data[key] for key in self._key_order if key in data}
        ordered.update((key, value) for key, value in data.items() if key not in ordered)
        return ordered


class ManifestFile(_OrderedModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    project_id: int = Field(alias="projectID")
    file_id: int = Field(alias="fileID")
    required: bool = True
    filename: str | None = None


class Manifest(_OrderedModel):
    """CurseForge-style manifest; unknown keys are kept so saves round-trip."""

    name: str = ""
    version: str = ""
    files: list[ManifestFile] = Field(default_factory=list)

    def dump_ordered(self) -> dict[str, Any]:
        data = super().dump_ordered()
        if "files" in data:
            data["files"] = [f.dump_ordered() for f in self.files]
        return data


class ModPack:
    def __init__(self, name: str, root_path: Path, game_dir: str = "", mod_dir: str = "mods"):
        self.name = name
        self.root_path = Path(root_path)
        self.game_dir = game_dir
        self.mod_dir = mod_dir
        self.manifest = Manifest()
        self._mod_cache: MetaCache | None = None

    @classmethod
    def open(cls, dir_or_name: str, env: McdexEnv) -> ModPack:
        """Open an existing pack by absolute path, ``.``, or name under the mcdex pack dir.

        Only the manifest is read; ``mods/`` and the install cache are created
        the first time ``mod_cache`` is used.
        """
        path = Path(dir_or_name)
        if path.is_absolute():
            pack = cls(path.name, path)
        elif dir_or_name == ".":
            cwd = Path.cwd()
            pack = cls(cwd.name, cwd)
        else:
            pack = cls(dir_or_name, env.pack_dir / dir_or_name)

        pack.load_manifest()
        logger.info("-- %s --", pack.game_path)
        return pack

    def __enter__(self) -> ModPack:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        if self._mod_cache is not None:
            self._mod_cache.close()
            self._mod_cache = None

    @property
    def mod_cache(self) -> MetaCache:
        if self._mod_cache is None:
            try:
                self.mod_path.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise CacheError(f"Failed to create {self.mod_path}: {e}") from e
            self._mod_cache = MetaCache.open(self.game_path / CACHE_FILENAME, self.mod_path)
        return self._mod_cache

    @property
    def game_path(self) -> Path:
        return self.root_path / self.game_dir if self.game_dir else self.root_path

    @property
    def mod_path(self) -> Path:
        return self.game_path / self.mod_dir

    @property
    def manifest_path(self) -> Path:
        return self.game_path / MANIFEST_FILENAME

    @property
    def full_name(self) -> str:
        return f"{self.manifest.name} - {self.manifest.version}"

    # --- Manifest I/O ---

    def load_manifest(self) -> None:
        try:
            raw = json.loads(self.manifest_path.read_text(encoding="utf-8"))
            self.manifest = Manifest.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise ManifestError(f"Failed to load manifest from {self.game_path}: {e}") from e

    def save_manifest(self) -> None:
        """Write manifest.json atomically (temp file + rename)."""
        data = self.manifest.dump_ordered()
        payload = json.dumps(data, indent=2) + "\n"

        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self.game_path, prefix=".manifest-", suffix=".tmp",
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.manifest_path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise ManifestError(f"failed to save {MANIFEST_FILENAME}: {e}") from e
        logger.debug("Saved %s", self.manifest_path)

    # --- Manifest files ---

    def list_installed_files(self) -> list[ManifestFileEntry]:
        return [
            ManifestFileEntry(
                file_id=f.file_id,
                project_id=f.project_id,
                index=i,
                filename=f.filename or "",
            )
            for i, f in enumerate(self.manifest.files)
        ]

    def lookup_file_id(self, project_id: int) -> int:
        for f in self.manifest.files:
            if f.project_id == project_id:
                return f.file_id
        raise ModNotInPackError(f"Mod {project_id} is not part of pack {self.name}")

    def remove_file_at(self, index: int) -> None:
        if not 0 <= index < len(self.manifest.files):
            raise ManifestError(
                f"No file at index {index} (manifest has {len(self.manifest.files)})"
            )
        del self.manifest.files[index]
