"""Multi-rendition HLS encoding through ffmpeg.

Renditions are encoded one after another, never concurrently, to keep peak
memory and CPU bounded. Progress comes from the ``time=`` marker ffmpeg
writes to stderr.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Callable, Sequence
from functools import partial
from pathlib import Path

from app.adapters.process import ProcessRegistry, ProcessRunner
from app.core.config import Settings
from app.core.logging_safety import diagnostic_tail
from app.domain.renditions import PLAYLIST_TYPE, SEGMENT_DURATION_SECONDS, RenditionArtifact, RenditionSpec
from app.errors import ProbeFailedError, SpawnFailedError, TranscodeFailedError

logger = logging.getLogger(__name__)

RunnerFactory = Callable[[str, Sequence[str]], ProcessRunner]
ProgressCallback = Callable[[float], None]

ENCODE_PROGRESS_SPAN = 80.0
PROGRESS_REPORT_STEP = 0.05

_TIME_MARKER = re.compile(r"time=(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
_MARKER_CARRY_CHARS = 32
_STDERR_KEEP_CHARS = 4096


def ladder_progress(completed: int, fraction: float, count: int) -> float:
    """Map one rendition's fraction onto the job's 0-80 encoding band."""
    if count <= 0:
        return ENCODE_PROGRESS_SPAN
    fraction = max(0.0, min(1.0, fraction))
    return ((completed + fraction) / count) * ENCODE_PROGRESS_SPAN


class ElapsedTimeParser:
    """Pull the latest ``time=HH:MM:SS.ss`` value out of a chunked stderr stream.

    A marker split across two chunks is recovered by carrying a short tail of
    unmatched text into the next feed.
    """

    def __init__(self) -> None:
        self._carry = ""

    def feed(self, text: str) -> float | None:
        buffer = self._carry + text
        matches = list(_TIME_MARKER.finditer(buffer))
        if not matches:
            self._carry = buffer[-_MARKER_CARRY_CHARS:]
            return None
        last = matches[-1]
        self._carry = buffer[last.end():][-_MARKER_CARRY_CHARS:]
        hours, minutes, seconds = last.groups()
        return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


class ProgressThrottle:
    """Forward a rendition's progress only in steps of at least five points."""

    def __init__(self, duration: float, report: ProgressCallback, step: float = PROGRESS_REPORT_STEP) -> None:
        self._duration = duration
        self._report = report
        self._step = step
        self.last_reported = 0.0

    def observe(self, elapsed_seconds: float) -> None:
        if self._duration <= 0:
            return
        fraction = min(max(elapsed_seconds / self._duration, 0.0), 1.0)
        if fraction - self.last_reported >= self._step:
            self.last_reported = fraction
            self._report(fraction)

    def finish(self) -> None:
        self.last_reported = 1.0
        self._report(1.0)


class _TailBuffer:
    def __init__(self, keep: int = _STDERR_KEEP_CHARS) -> None:
        self._keep = keep
        self._text = ""

    def append(self, text: str) -> None:
        self._text = (self._text + text)[-self._keep:]

    def text(self) -> str:
        return self._text


class ResolutionEncoder:
    def __init__(
        self,
        *,
        runner_factory: RunnerFactory,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        preset: str = "veryfast",
        crf: int = 23,
        threads: int = 2,
        max_muxing_queue_size: int = 1024,
    ) -> None:
        self._runner_factory = runner_factory
        self._ffmpeg = ffmpeg_path
        self._ffprobe = ffprobe_path
        self._preset = preset
        self._crf = crf
        self._threads = threads
        self._max_muxing_queue_size = max_muxing_queue_size

    @property
    def runner_factory(self) -> RunnerFactory:
        return self._runner_factory

    @classmethod
    def from_settings(cls, settings: Settings, registry: ProcessRegistry | None = None) -> ResolutionEncoder:
        return cls(
            runner_factory=partial(ProcessRunner, registry=registry),
            ffmpeg_path=settings.ffmpeg_path,
            ffprobe_path=settings.ffprobe_path,
            preset=settings.encoder_preset,
            crf=settings.encoder_crf,
            threads=settings.encoder_threads,
            max_muxing_queue_size=settings.max_muxing_queue_size,
        )

    async def check_installation(self) -> bool:
        try:
            result = await self._runner_factory(self._ffmpeg, ["-version"]).run()
        except SpawnFailedError:
            return False
        return result.exit_code == 0

    def build_probe_args(self, source: Path) -> list[str]:
        return [
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(source),
        ]

    async def probe_duration(self, source: Path) -> float:
        result = await self._runner_factory(self._ffprobe, self.build_probe_args(source)).run()
        if result.exit_code != 0:
            raise ProbeFailedError(
                f"ffprobe exited with code {result.exit_code}: {diagnostic_tail(result.stderr)}"
            )

        output = result.stdout.decode("utf-8", errors="replace").strip()
        try:
            duration = float(output.splitlines()[0])
        except (IndexError, ValueError) as exc:
            raise ProbeFailedError(f"Could not parse duration from ffprobe output: {output!r}") from exc
        if not math.isfinite(duration) or duration <= 0:
            raise ProbeFailedError(f"Invalid duration reported by ffprobe: {output!r}")
        return duration

    def build_encode_args(self, source: Path, out_dir: Path, spec: RenditionSpec) -> list[str]:
        width, height = spec.width, spec.height
        video_filter = (
            f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
            f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2"
        )
        return [
            "-hide_banner",
            "-nostdin",
            "-y",
            "-i", str(source),
            "-vf", video_filter,
            "-c:v", "libx264",
            "-preset", self._preset,
            "-crf", str(self._crf),
            "-maxrate", f"{spec.video_bitrate_kbps}k",
            "-bufsize", f"{spec.video_bitrate_kbps * 2}k",
            "-threads", str(self._threads),
            "-max_muxing_queue_size", str(self._max_muxing_queue_size),
            "-c:a", "aac",
            "-b:a", f"{spec.audio_bitrate_kbps}k",
            "-ac", "2",
            "-ar", "44100",
            "-hls_time", str(SEGMENT_DURATION_SECONDS),
            "-hls_list_size", "0",
            "-hls_segment_type", "mpegts",
            "-hls_playlist_type", PLAYLIST_TYPE,
            "-hls_flags", "independent_segments",
            "-hls_segment_filename", str(out_dir / spec.segment_pattern),
            "-f", "hls",
            str(out_dir / spec.playlist_name),
        ]

    async def encode_rendition(
        self,
        source: Path,
        out_dir: Path,
        spec: RenditionSpec,
        duration: float,
        on_progress: ProgressCallback,
    ) -> RenditionArtifact:
        parser = ElapsedTimeParser()
        throttle = ProgressThrottle(duration, on_progress)
        stderr_tail = _TailBuffer()

        async with self._runner_factory(self._ffmpeg, self.build_encode_args(source, out_dir, spec)) as runner:
            async for chunk in runner.stream():
                if chunk.channel != "stderr":
                    continue
                text = chunk.text()
                stderr_tail.append(text)
                elapsed = parser.feed(text)
                if elapsed is not None:
                    throttle.observe(elapsed)
            exit_code = await runner.wait()

        if exit_code != 0:
            raise TranscodeFailedError(spec.name, exit_code, diagnostic_tail(stderr_tail.text()))

        throttle.finish()
        return RenditionArtifact.collect(spec, out_dir)

    async def encode_ladder(
        self,
        source: Path,
        out_dir: Path,
        renditions: Sequence[RenditionSpec],
        on_progress: ProgressCallback | None = None,
    ) -> list[RenditionArtifact]:
        duration = await self.probe_duration(source)
        logger.info("encode.probed source=%s duration=%.2f", source.name, duration)

        count = len(renditions)
        artifacts: list[RenditionArtifact] = []
        for index, spec in enumerate(renditions):

            def report(fraction: float, completed: int = index) -> None:
                if on_progress is not None:
                    on_progress(ladder_progress(completed, fraction, count))

            logger.info("encode.rendition_started rendition=%s index=%s count=%s", spec.name, index + 1, count)
            artifact = await self.encode_rendition(source, out_dir, spec, duration, report)
            logger.info(
                "encode.rendition_completed rendition=%s segments=%s",
                spec.name,
                len(artifact.segment_paths),
            )
            artifacts.append(artifact)
        return artifacts
