"""Poster frame extraction."""

from __future__ import annotations

import logging
from pathlib import Path

from app.core.logging_safety import diagnostic_tail
from app.domain.renditions import THUMBNAIL_NAME
from app.errors import ThumbnailFailedError
from app.services.encoder import RunnerFactory

logger = logging.getLogger(__name__)

THUMBNAIL_TIMESTAMP = "1"
THUMBNAIL_WIDTH = 640


class ThumbnailExtractor:
    def __init__(self, *, runner_factory: RunnerFactory, ffmpeg_path: str = "ffmpeg") -> None:
        self._runner_factory = runner_factory
        self._ffmpeg = ffmpeg_path

    def build_args(self, source: Path, out_dir: Path) -> list[str]:
        return [
            "-hide_banner",
            "-nostdin",
            "-y",
            "-ss", THUMBNAIL_TIMESTAMP,
            "-i", str(source),
            "-frames:v", "1",
            "-vf", f"scale={THUMBNAIL_WIDTH}:-2",
            "-q:v", "2",
            str(out_dir / THUMBNAIL_NAME),
        ]

    async def extract(self, source: Path, out_dir: Path) -> Path:
        result = await self._runner_factory(self._ffmpeg, self.build_args(source, out_dir)).run()
        if result.exit_code != 0:
            raise ThumbnailFailedError(result.exit_code, diagnostic_tail(result.stderr))
        logger.info("thumbnail.extracted source=%s", source.name)
        return out_dir / THUMBNAIL_NAME
