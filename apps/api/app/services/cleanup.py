"""Scratch-space removal for finished jobs."""

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


class CleanupManager:
    def cleanup(self, source_path: Path, work_dir: Path) -> bool:
        """Remove the uploaded source and the job's working directory.

        Safe to call repeatedly. Failures are logged and reported through the
        return value only.
        """
        ok = True
        try:
            source_path.unlink(missing_ok=True)
        except OSError as exc:
            ok = False
            logger.warning("cleanup.source_failed path=%s reason=%s", source_path, exc)

        if work_dir.exists():
            try:
                shutil.rmtree(work_dir)
            except OSError as exc:
                ok = False
                logger.warning("cleanup.workdir_failed path=%s reason=%s", work_dir, exc)
        return ok
