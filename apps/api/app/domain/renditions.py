"""Rendition ladder and per-rendition HLS artifacts."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path

SEGMENT_DURATION_SECONDS = 6
PLAYLIST_TYPE = "vod"
MASTER_PLAYLIST_NAME = "master.m3u8"
THUMBNAIL_NAME = "thumbnail.jpg"


@dataclass(frozen=True, slots=True)
class RenditionSpec:
    name: str
    width: int
    height: int
    video_bitrate_kbps: int
    audio_bitrate_kbps: int

    @property
    def bandwidth(self) -> int:
        """Peak bandwidth advertised in the master playlist, in bits per second."""
        return self.video_bitrate_kbps * 1000

    @property
    def playlist_name(self) -> str:
        return f"{self.name}.m3u8"

    @property
    def segment_pattern(self) -> str:
        return f"{self.name}_%03d.ts"


# Always attempted in this order regardless of source resolution.
DEFAULT_LADDER: tuple[RenditionSpec, ...] = (
    RenditionSpec(name="720p", width=1280, height=720, video_bitrate_kbps=2500, audio_bitrate_kbps=128),
    RenditionSpec(name="480p", width=854, height=480, video_bitrate_kbps=1200, audio_bitrate_kbps=96),
)


@dataclass(slots=True)
class RenditionArtifact:
    spec: RenditionSpec
    playlist_path: Path
    segment_paths: list[Path] = field(default_factory=list)
    segment_duration: int = SEGMENT_DURATION_SECONDS
    playlist_type: str = PLAYLIST_TYPE

    @classmethod
    def collect(cls, spec: RenditionSpec, out_dir: Path) -> RenditionArtifact:
        """Describe the files the encoder left in ``out_dir`` for ``spec``."""
        # %03d is a minimum width; segment 1000 onwards has four digits.
        pattern = re.compile(rf"{re.escape(spec.name)}_(\d{{3,}})\.ts")
        numbered = []
        for path in out_dir.glob(f"{spec.name}_*.ts"):
            match = pattern.fullmatch(path.name)
            if match:
                numbered.append((int(match.group(1)), path))
        segments = [path for _, path in sorted(numbered)]
        return cls(spec=spec, playlist_path=out_dir / spec.playlist_name, segment_paths=segments)
