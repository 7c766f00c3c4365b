"""Segment export — writes the final segmentation as a sidecar file."""

import json
from pathlib import Path

from sceneforge.models import Segment, Track


def _format_time(ms: int) -> str:
    h = ms // 3_600_000
    m = (ms % 3_600_000) // 60_000
    s = (ms % 60_000) // 1000
    return f"{h:02d}:{m:02d}:{s:02d}.{ms % 1000:03d}"


def segments_to_dict(segments: list[Segment], track: Track) -> dict:
    return {
        "media": str(track.path),
        "duration": track.duration,
        "segments": [
            {
                "id": seg.identifier,
                "index": seg.index,
                "start": seg.start,
                "duration": seg.duration,
            }
            for seg in segments
        ],
    }


def _write_json(segments: list[Segment], track: Track, path: Path) -> None:
    path.write_text(json.dumps(segments_to_dict(segments, track), indent=2), encoding="utf-8")


def _write_ffmetadata(segments: list[Segment], path: Path) -> None:
    """Write an ffmpeg chapter file that can be muxed back with ``-map_metadata``."""
    lines: list[str] = [";FFMETADATA1"]
    for seg in segments:
        lines.append("")
        lines.append("[CHAPTER]")
        lines.append("TIMEBASE=1/1000")
        lines.append(f"START={seg.start}")
        lines.append(f"END={seg.end}")
        lines.append(f"title={seg.identifier} ({_format_time(seg.start)})")
    lines.append("")
    path.write_text("\n".join(lines), encoding="utf-8")


def write_segments(
    segments: list[Segment],
    track: Track,
    output_path: Path,
    fmt: str = "json",
) -> Path:
    if fmt == "ffmetadata":
        _write_ffmetadata(segments, output_path)
    else:
        _write_json(segments, track, output_path)
    return output_path
