"""Runtime environment: where Minecraft, mcdex data and packs live."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

DATABASE_FILENAME = "mcdex.dat"


def default_minecraft_dir() -> Path:
    """Platform-specific default Minecraft home."""
    home = Path.home()
    if sys.platform.startswith("win"):
        appdata = os.getenv("APPDATA")
        return Path(appdata) / ".minecraft" if appdata else home / ".minecraft"
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / "minecraft"
    return home / ".minecraft"


@dataclass
class McdexEnv:
    minecraft_dir: Path | None = None
    mcdex_dir: Path | None = None

    def __post_init__(self):
        if self.minecraft_dir is None:
            env_dir = os.getenv("MCDEX_MINECRAFT_DIR", "")
            self.minecraft_dir = Path(env_dir) if env_dir else default_minecraft_dir()
        if self.mcdex_dir is None:
            env_dir = os.getenv("MCDEX_DIR", "")
            self.mcdex_dir = Path(env_dir) if env_dir else self.minecraft_dir / "mcdex"
        self.minecraft_dir = Path(self.minecraft_dir).expanduser()
        self.mcdex_dir = Path(self.mcdex_dir).expanduser()

    @property
    def database_path(self) -> Path:
        return self.mcdex_dir / DATABASE_FILENAME

    @property
    def pack_dir(self) -> Path:
        return self.mcdex_dir / "pack"
