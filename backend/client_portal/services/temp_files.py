from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from client_portal.core.settings import settings

logger = logging.getLogger(__name__)


class TempFileStore:
    """Hands out unique temporary paths and removes them on request.

    Every call to ``create`` returns a fresh, already-created empty file,
    so concurrent exports never share a path.
    """

    def __init__(self, directory: Optional[str | Path] = None) -> None:
        self.directory = Path(directory or settings.export_tmp_dir).expanduser().resolve()

    def create(self, *, prefix: str = "portal_export_", suffix: str = "") -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=self.directory)
        os.close(fd)
        return Path(name)

    def remove(self, path: Path) -> bool:
        """Delete ``path`` if it still exists. Failures are logged, never raised."""
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("temp_file_cleanup_failed", extra={"path": str(path)}, exc_info=True)
            return False
        return True
