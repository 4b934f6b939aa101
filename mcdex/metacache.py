"""Per-pack cache of installed mod files, so updates skip files already present."""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import Column, Integer, String, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from mcdex.errors import CacheError

logger = logging.getLogger(__name__)

CacheBase = declarative_base()


class CachedModFile(CacheBase):
    __tablename__ = "mods"

    pid = Column(Integer, primary_key=True)
    fid = Column(Integer)
    filename = Column(String)


class MetaCache:
    def __init__(self, db_path: Path, mod_path: Path):
        self.db_path = Path(db_path)
        self.mod_path = Path(mod_path)
        self.engine = create_engine(f"sqlite:///{self.db_path}")
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    @classmethod
    def open(cls, db_path: Path, mod_path: Path) -> MetaCache:
        cache = cls(db_path, mod_path)
        try:
            CacheBase.metadata.create_all(cache.engine)
        except SQLAlchemyError as e:
            cache.close()
            raise CacheError(f"Failed to open mod cache {db_path}: {e}") from e
        return cache

    def close(self) -> None:
        self.engine.dispose()

    def add_mod_file(self, project_id: int, file_id: int, filename: str) -> None:
        try:
            with self._session_factory() as session:
                session.merge(CachedModFile(pid=project_id, fid=file_id, filename=filename))
                session.commit()
        except SQLAlchemyError as e:
            raise CacheError(f"Failed to record {filename} in mod cache: {e}") from e

    def get_last_mod_file(self, project_id: int) -> tuple[int, str]:
        """Return (file id, filename) last installed for a project, or (0, "")."""
        try:
            with self._session_factory() as session:
                row = session.get(CachedModFile, project_id)
        except SQLAlchemyError as e:
            raise CacheError(f"Failed to query mod cache: {e}") from e
        if row is None:
            return 0, ""
        return row.fid, row.filename

    def cleanup_mod_file(self, project_id: int) -> None:
        """Delete the installed jar of a project and forget it.

        A project that was never downloaded has no row and nothing to do.
        """
        try:
            with self._session_factory() as session:
                row = session.get(CachedModFile, project_id)
                if row is None:
                    return
                if row.filename:
                    jar = self.mod_path / row.filename
                    logger.debug("Deleting %s", jar)
                    jar.unlink(missing_ok=True)
                session.delete(row)
                session.commit()
        except (OSError, SQLAlchemyError) as e:
            raise CacheError(f"Failed to clean up files for project {project_id}: {e}") from e
