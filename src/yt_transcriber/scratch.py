from __future__ import annotations

import logging
from pathlib import Path
from types import TracebackType

logger = logging.getLogger(__name__)


class ScratchFiles:
    """Temporary files owned by one job, deleted on every exit path.

    Files are registered before the tool that creates them runs, so partial
    outputs are covered too. ``track_pattern`` additionally sweeps stray
    files an external tool may leave next to the expected ones.
    Deletion failures are logged and never raised.
    """

    def __init__(self) -> None:
        self._paths: list[Path] = []
        self._patterns: list[tuple[Path, str]] = []
        self._closed = False

    def register(self, path: Path) -> Path:
        if path not in self._paths:
            self._paths.append(path)
        return path

    def track_pattern(self, directory: Path, pattern: str) -> None:
        self._patterns.append((directory, pattern))

    def release(self, path: Path) -> None:
        """Delete ``path`` now and stop tracking it."""
        if path in self._paths:
            self._paths.remove(path)
        self._delete(path)

    @property
    def pending(self) -> list[Path]:
        return list(self._paths)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        paths, self._paths = self._paths, []
        for path in paths:
            self._delete(path)
        for directory, pattern in self._patterns:
            try:
                leftovers = [path for path in directory.glob(pattern) if path.is_file()]
            except OSError as exc:
                logger.warning("Could not sweep %s for %s: %s", directory, pattern, exc)
                continue
            for leftover in leftovers:
                self._delete(leftover)

    def __enter__(self) -> ScratchFiles:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @staticmethod
    def _delete(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not delete temporary file %s: %s", path, exc)
        else:
            logger.debug("Deleted temporary file %s", path)
