"""Locate the newest import file for an app inside the import storage tree."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class ImportFileNotFoundError(FileNotFoundError):
    """Raised when no import file can be resolved for an app name."""


def _newest(files: list[Path]) -> Path | None:
    newest: Path | None = None
    newest_mtime = 0.0
    for path in files:
        try:
            mtime = path.stat().st_mtime
        except OSError:
            mtime = 0.0
        if newest is None or mtime >= newest_mtime:
            newest, newest_mtime = path, mtime
    return newest


class FileSelector:
    """
    Resolve import files from a directory laid out as one folder per app.

    Lookup order: exact folder name, case-insensitive folder name, then any
    file directly under the root whose name contains the app name.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def resolve_newest_file(self, app_name: str) -> Path:
        root = self._root
        if not root.is_dir():
            raise ImportFileNotFoundError(
                f"Import storage directory not found: {root.absolute()}"
            )

        app_dir = self._match_directory(app_name)
        if app_dir is not None:
            newest = _newest([p for p in app_dir.iterdir() if p.is_file()])
            if newest is None:
                raise ImportFileNotFoundError(
                    f"No files found in import folder: {app_dir.absolute()}"
                )
            logger.debug("Resolved import file", extra={"app_name": app_name, "file": str(newest)})
            return newest

        needle = app_name.lower()
        newest = _newest(
            [p for p in root.iterdir() if p.is_file() and needle in p.name.lower()]
        )
        if newest is None:
            raise ImportFileNotFoundError(
                f"No folder or matching file found for appName under import storage: "
                f"{app_name} (looked in: {root.absolute()})"
            )
        logger.debug("Resolved flat import file", extra={"app_name": app_name, "file": str(newest)})
        return newest

    def _is_app_folder(self, candidate: Path) -> bool:
        """True only for a folder directly under the root ("..", "." and absolute names are not)."""
        return candidate.resolve().parent == self._root.resolve() and candidate.is_dir()

    def _match_directory(self, app_name: str) -> Path | None:
        exact = self._root / app_name
        if self._is_app_folder(exact):
            return exact
        lowered = app_name.lower()
        for candidate in sorted(self._root.iterdir()):
            if candidate.is_dir() and candidate.name.lower() == lowered:
                return candidate
        return None
