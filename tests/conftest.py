"""Shared fixtures: throwaway metadata databases and pack directories."""

import json
from pathlib import Path

import pytest

from mcdex.database import Database, Dependency, File, Meta, Project
from mcdex.models import ProjectType


@pytest.fixture
def make_database():
    """Factory building a populated mcdex.dat at ``path``.

    projects: [(project_id, name, slug[, type[, downloads]])]
    files:    [(file_id, project_id[, version[, tstamp]])]
    deps:     [(file_id, project_id, level)]
    meta:     {key: value}
    """
    opened: list[Database] = []

    def _make(path: Path, projects, files, deps, meta=None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        db = Database.create(path)
        opened.append(db)
        with db.session() as session:
            session.add_all(_project(row) for row in projects)
            session.add_all(_file(row) for row in files)
            session.add_all(
                Dependency(fileid=fid, projectid=pid, level=level)
                for fid, pid, level in deps
            )
            session.add_all(Meta(key=k, value=str(v)) for k, v in (meta or {}).items())
        return path

    yield _make

    for db in opened:
        db.close()


def _project(row):
    pid, name, slug, *rest = row
    ptype = rest[0] if rest else ProjectType.MOD
    downloads = rest[1] if len(rest) > 1 else 0
    return Project(projectid=pid, type=int(ptype), name=name, slug=slug,
                   description=f"{name} mod", downloads=downloads)


def _file(row):
    fid, pid, *rest = row
    version = rest[0] if rest else "1.12.2"
    tstamp = rest[1] if len(rest) > 1 else fid
    return File(fileid=fid, projectid=pid, version=version, filename=f"file-{fid}.jar", tstamp=tstamp)


@pytest.fixture
def make_pack():
    """Factory writing a manifest.json with the given (project_id, file_id) files."""

    def _make(game_dir: Path, files, name: str = "Test Pack") -> Path:
        game_dir.mkdir(parents=True, exist_ok=True)
        manifest = {
            "minecraft": {
                "version": "1.12.2",
                "modLoaders": [{"id": "forge-14.23.5.2847", "primary": True}],
            },
            "manifestType": "minecraftModpack",
            "manifestVersion": 1,
            "name": name,
            "version": "1.0.0",
            "author": "tester",
            "files": [
                {"projectID": pid, "fileID": fid, "required": True}
                for pid, fid in files
            ],
            "overrides": "overrides",
        }
        path = game_dir / "manifest.json"
        path.write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
        return path

    return _make


@pytest.fixture
def clean_env(monkeypatch):
    monkeypatch.delenv("MCDEX_DIR", raising=False)
    monkeypatch.delenv("MCDEX_MINECRAFT_DIR", raising=False)
