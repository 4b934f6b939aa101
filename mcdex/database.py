"""Read access to the mcdex.dat metadata database (projects, files, deps)."""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from sqlalchemy import Column, Integer, String, Text, create_engine, func, or_, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from mcdex.errors import DatabaseError, ModNotFoundError, PatternError
from mcdex.models import DependencyEdge, DependencyLevel, FileInfo, ProjectInfo, ProjectType

logger = logging.getLogger(__name__)

Base = declarative_base()

# meta key holding the release time of the newest file in the database
LATEST_FILE_KEY = "dbtunix"

LATEST_LIMIT = 100


class Project(Base):
    __tablename__ = "projects"

    projectid = Column(Integer, primary_key=True)
    type = Column(Integer, nullable=False, default=int(ProjectType.MOD))  # 0 = mod, 1 = modpack
    name = Column(String, nullable=False)
    slug = Column(String, index=True)
    description = Column(Text, default="")
    downloads = Column(Integer, default=0)


class File(Base):
    __tablename__ = "files"

    fileid = Column(Integer, primary_key=True)
    projectid = Column(Integer, index=True, nullable=False)
    version = Column(String)  # Minecraft version
    filename = Column(String)
    tstamp = Column(Integer, default=0)


class Dependency(Base):
    __tablename__ = "deps"

    fileid = Column(Integer, primary_key=True)  # file that has the dependency
    projectid = Column(Integer, primary_key=True)  # project it depends on
    level = Column(Integer, nullable=False, default=int(DependencyLevel.REQUIRED))


class Meta(Base):
    __tablename__ = "meta"

    key = Column(String, primary_key=True)
    value = Column(String)


class Database:
    """Thin query layer over the metadata SQLite file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.engine = create_engine(f"sqlite:///{self.path}")
        self._session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )

    @classmethod
    def open(cls, path: Path) -> Database:
        """Open an existing database and verify its integrity."""
        path = Path(path)
        if not path.exists():
            raise DatabaseError("No database available; use db.update command first")

        db = cls(path)
        try:
            with db.engine.connect() as conn:
                status = conn.execute(text("PRAGMA integrity_check")).scalar()
        except SQLAlchemyError as e:
            db.close()
            raise DatabaseError(f"Failed to open database {path}: {e}") from e

        if status != "ok":
            db.close()
            raise DatabaseError(f"Database {path} failed integrity check: {status}")

        logger.debug("Opened database %s", path)
        return db

    @classmethod
    def create(cls, path: Path) -> Database:
        """Create an empty database with the expected schema."""
        db = cls(path)
        Base.metadata.create_all(db.engine)
        return db

    def __enter__(self) -> Database:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise DatabaseError(f"Database query failed: {e}") from e
        finally:
            session.close()

    # ── Lookups ─────────────────────────────────────────────

    def find_mod_by_name(self, name: str) -> int:
        """Return the project id of the mod whose name or slug is ``name``."""
        stmt = (
            select(Project.projectid)
            .where(
                Project.type == int(ProjectType.MOD),
                or_(Project.name == name, Project.slug == name),
            )
            .limit(1)
        )
        with self.session() as session:
            project_id = session.execute(stmt).scalar()
        if project_id is None:
            raise ModNotFoundError(f"No mod found {name}")
        return project_id

    def resolve_name(self, file_id: int, project_id: int) -> str | None:
        """Display name for an installed file, or None if the database lacks it."""
        stmt = (
            select(Project.name)
            .join(File, File.projectid == Project.projectid)
            .where(File.fileid == file_id, File.projectid == project_id)
            .distinct()
            .limit(1)
        )
        with self.session() as session:
            return session.execute(stmt).scalar()

    def get_project(self, project_id: int) -> ProjectInfo | None:
        with self.session() as session:
            project = session.get(Project, project_id)
            return _project_info(project) if project is not None else None

    def get_file(self, file_id: int) -> FileInfo | None:
        with self.session() as session:
            row = session.get(File, file_id)
            if row is None:
                return None
            return FileInfo(
                file_id=row.fileid,
                project_id=row.projectid,
                version=row.version or "",
                filename=row.filename or "",
                tstamp=row.tstamp or 0,
            )

    def latest_file_timestamp(self) -> int | None:
        """Release time of the newest file the database knows about."""
        with self.session() as session:
            row = session.get(Meta, LATEST_FILE_KEY)
        if row is None or not row.value:
            return None
        try:
            return int(row.value)
        except ValueError:
            logger.warning("Ignoring malformed %s value %r", LATEST_FILE_KEY, row.value)
            return None

    # ── Listings ────────────────────────────────────────────

    def list_projects(
        self,
        pattern: str = "",
        mc_version: str = "",
        project_type: ProjectType = ProjectType.MOD,
    ) -> list[ProjectInfo]:
        """Projects of ``project_type`` whose slug matches ``pattern``, by slug.

        ``pattern`` is a case-insensitive regular expression searched in the
        slug; projects without a slug always match. A non-empty
        ``mc_version`` keeps projects with at least one file for it.
        """
        try:
            slug_re = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            raise PatternError(f"Failed to convert {pattern} into regex: {e}") from e

        stmt = select(Project).where(Project.type == int(project_type))
        if mc_version:
            stmt = stmt.where(
                Project.projectid.in_(select(File.projectid).where(File.version == mc_version))
            )
        stmt = stmt.order_by(Project.slug)

        with self.session() as session:
            projects = session.execute(stmt).scalars().all()
            return [
                _project_info(p) for p in projects
                if not p.slug or slug_re.search(p.slug)
            ]

    def list_latest_projects(
        self,
        project_type: ProjectType = ProjectType.MOD,
        mc_version: str = "",
        limit: int = LATEST_LIMIT,
    ) -> list[ProjectInfo]:
        """Projects of ``project_type`` with the most recently released files first."""
        latest = func.max(File.tstamp).label("latest")
        files = select(File.projectid, latest).group_by(File.projectid)
        if mc_version:
            files = files.where(File.version == mc_version)
        files = files.subquery()

        stmt = (
            select(Project)
            .join(files, files.c.projectid == Project.projectid)
            .where(Project.type == int(project_type))
            .order_by(files.c.latest.desc(), Project.slug)
            .limit(limit)
        )
        with self.session() as session:
            return [_project_info(p) for p in session.execute(stmt).scalars().all()]

    def query_dependency_edges(self, file_ids: Iterable[int]) -> list[DependencyEdge]:
        """All required/optional edges whose source and target files are in ``file_ids``.

        The target project is joined back to its file so callers get file ids
        on both ends. One query for the whole set.
        """
        ids = sorted(set(file_ids))
        if not ids:
            return []

        stmt = (
            select(Dependency.fileid, Dependency.projectid, File.fileid, Dependency.level)
            .join(File, File.projectid == Dependency.projectid)
            .where(
                Dependency.level != int(DependencyLevel.EMBEDDED),
                Dependency.fileid.in_(ids),
                File.fileid.in_(ids),
            )
            .distinct()
            .order_by(Dependency.fileid, File.fileid)
        )

        edges: list[DependencyEdge] = []
        with self.session() as session:
            rows = session.execute(stmt).all()

        for source_id, project_id, target_id, level in rows:
            try:
                dep_level = DependencyLevel(level)
            except ValueError:
                logger.debug("Ignoring dependency %d -> %d with unknown level %s", source_id, project_id, level)
                continue
            edges.append(DependencyEdge(
                source_file_id=source_id,
                target_project_id=project_id,
                target_file_id=target_id,
                level=dep_level,
            ))

        logger.debug("Loaded %d dependency edge(s) for %d file(s)", len(edges), len(ids))
        return edges


def _project_info(project: Project) -> ProjectInfo:
    return ProjectInfo(
        project_id=project.projectid,
        name=project.name,
        slug=project.slug or "",
        description=project.description or "",
        downloads=project.downloads or 0,
    )
