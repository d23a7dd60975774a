"""Local filesystem implementation of the cluster filesystem handle."""

from __future__ import annotations

from pathlib import Path

import structlog

from launchspine.launch.models import FileStatus

logger = structlog.get_logger(__name__)


class LocalFilesystem:
    """
    Cluster filesystem backed by a local (or shared-mount) directory tree.

    Relative paths resolve under ``base_path``; absolute paths are used
    as-is. Locators are ``file://`` URLs.
    """

    scheme = "file"

    def __init__(self, base_path: str | Path = "."):
        self.base_path = Path(base_path).resolve()

    def _resolve_path(self, path: str | Path) -> Path:
        path = Path(path)
        if path.is_absolute():
            return path
        return self.base_path / path

    def _to_status(self, path: Path) -> FileStatus:
        stat = path.stat()
        return FileStatus(
            path=str(path),
            size=stat.st_size,
            modification_time=int(stat.st_mtime * 1000),
            is_dir=path.is_dir(),
        )

    def list_files(self, path: str | Path) -> list[FileStatus]:
        """List regular files directly under a directory, sorted by name."""
        full_path = self._resolve_path(path)
        if not full_path.is_dir():
            raise NotADirectoryError(f"Not a directory: {full_path}")
        return [
            self._to_status(entry)
            for entry in sorted(full_path.iterdir())
            if entry.is_file()
        ]

    def status(self, path: str | Path) -> FileStatus:
        full_path = self._resolve_path(path)
        if not full_path.exists():
            raise FileNotFoundError(f"No such file: {full_path}")
        return self._to_status(full_path)

    def qualify(self, path: str | Path) -> str:
        return self._resolve_path(path).resolve().as_uri()

    def mkdirs(self, path: str | Path) -> None:
        self._resolve_path(path).mkdir(parents=True, exist_ok=True)

    def write_bytes(self, path: str | Path, data: bytes) -> FileStatus:
        full_path = self._resolve_path(path)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(data)
        logger.debug("file_written", path=str(full_path), size=len(data))
        return self._to_status(full_path)
