"""Data models shared by the modpack, database and analysis layers."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class DependencyLevel(enum.IntEnum):
    REQUIRED = 1
    OPTIONAL = 2
    EMBEDDED = 3  # bundled inside the parent jar, never tracked in a manifest


class ProjectType(enum.IntEnum):
    MOD = 0
    MODPACK = 1


class RemovalMode(enum.Enum):
    SINGLE = "single"
    RECURSIVE = "recursive"

    @property
    def max_depth(self) -> int:
        return 1 if self is RemovalMode.SINGLE else -1

    @property
    def recursive(self) -> bool:
        return self is RemovalMode.RECURSIVE


@dataclass(frozen=True)
class ManifestFileEntry:
    """One element of the manifest's ``files`` array.

    Equality and hashing only look at ``file_id``, so entries can key result
    mappings no matter which copy of the record a caller holds.
    """
    file_id: int
    project_id: int = field(compare=False)
    index: int = field(compare=False)
    name: str = field(default="", compare=False)
    filename: str = field(default="", compare=False)
    # positions of further copies of the same file id in the manifest
    duplicate_indices: tuple[int, ...] = field(default=(), compare=False)

    @property
    def label(self) -> str:
        return self.name or f"project {self.project_id}"

    @property
    def indices(self) -> tuple[int, ...]:
        return (self.index, *self.duplicate_indices)


@dataclass(frozen=True)
class DependencyEdge:
    """``source_file_id`` depends on project ``target_project_id``.

    ``target_file_id`` is the file of that project present in the pack.
    """
    source_file_id: int
    target_project_id: int
    target_file_id: int
    level: DependencyLevel


@dataclass
class ProjectInfo:
    project_id: int
    name: str
    slug: str = ""
    description: str = ""
    downloads: int = 0


@dataclass
class FileInfo:
    file_id: int
    project_id: int
    version: str = ""  # Minecraft version
    filename: str = ""
    tstamp: int = 0  # release time, seconds since the epoch


@dataclass
class DepInfo:
    """Result of a removal impact analysis."""
    targets: list[ManifestFileEntry] = field(default_factory=list)
    dependents: dict[ManifestFileEntry, list[ManifestFileEntry]] = field(default_factory=dict)
    dependencies: dict[ManifestFileEntry, list[ManifestFileEntry]] = field(default_factory=dict)
    optionals: dict[ManifestFileEntry, list[ManifestFileEntry]] = field(default_factory=dict)

    def removal_set(self, recursive: bool) -> list[ManifestFileEntry]:
        """Entries to delete: targets only, or targets plus the whole cascade."""
        entries = list(self.targets)
        if recursive:
            entries.extend(self.dependents)
            entries.extend(self.dependencies)
        return list(dict.fromkeys(entries))
