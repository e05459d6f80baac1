"""Master playlist assembly."""

from collections.abc import Sequence
from pathlib import Path

from app.domain.renditions import MASTER_PLAYLIST_NAME, RenditionSpec

HLS_VERSION = 3


def render_master_playlist(renditions: Sequence[RenditionSpec]) -> str:
    """Render the master manifest; variants keep ladder order, not bitrate order."""
    lines = ["#EXTM3U", f"#EXT-X-VERSION:{HLS_VERSION}", ""]
    for spec in renditions:
        lines.append(
            f'#EXT-X-STREAM-INF:BANDWIDTH={spec.bandwidth},RESOLUTION={spec.width}x{spec.height},NAME="{spec.name}"'
        )
        lines.append(spec.playlist_name)
        lines.append("")
    return "\n".join(lines)


def assemble_master(out_dir: Path, renditions: Sequence[RenditionSpec]) -> Path:
    master_path = out_dir / MASTER_PLAYLIST_NAME
    master_path.write_text(render_master_playlist(renditions), encoding="utf-8")
    return master_path
