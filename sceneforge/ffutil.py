"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, Iterator

from sceneforge.errors import DetectionError, InvalidInputError
from sceneforge.models import ProbeResult

logger = logging.getLogger(__name__)

SHOWINFO_PREFIX = "[Parsed_showinfo"

_PTS_TIME = re.compile(r"pts_time:(\d+(?:\.\d+)?)")


class FFmpegNotFoundError(DetectionError):
    pass


def check_ffmpeg(binary: str = "ffmpeg") -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in (binary, "ffprobe"):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def probe(input_path: Path) -> ProbeResult:
    """Extract media metadata via ffprobe.

    Raises InvalidInputError when the file has no video stream or no usable
    duration. Audio is optional.
    """
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    data = json.loads(result.stdout)

    video_stream = next(
        (s for s in data["streams"] if s["codec_type"] == "video"), None
    )
    has_audio = any(s["codec_type"] == "audio" for s in data["streams"])

    if video_stream is None:
        raise InvalidInputError(f"No video stream found in {input_path}")

    raw_duration = data.get("format", {}).get("duration")
    if raw_duration in (None, "N/A"):
        raise InvalidInputError(f"{input_path} does not have a duration")

    # Parse fps from r_frame_rate (e.g. "30/1")
    num, den = video_stream.get("r_frame_rate", "0/1").split("/")
    fps = int(num) / int(den) if int(den) else 0.0

    return ProbeResult(
        duration=float(raw_duration),
        width=int(video_stream["width"]),
        height=int(video_stream["height"]),
        fps=fps,
        codec_video=video_stream["codec_name"],
        has_audio=has_audio,
    )


def scene_command(input_path: Path, sensitivity: float, binary: str = "ffmpeg") -> list[str]:
    """Build the ffmpeg command that reports frames past the scene threshold."""
    return [
        binary,
        "-nostats",
        "-i", str(input_path),
        "-filter:v", f"select=gt(scene\\,{sensitivity}),showinfo",
        "-f", "null", "-",
    ]


def parse_scene_cuts(lines: Iterable[str]) -> Iterator[int]:
    """Yield cut timestamps (ms) from ffmpeg showinfo log lines.

    Only lines emitted by the showinfo filter are considered; the last
    ``pts_time`` on such a line wins. A showinfo line without a timestamp
    reports a cut at 0.
    """
    for line in lines:
        if not line.startswith(SHOWINFO_PREFIX):
            continue
        times = _PTS_TIME.findall(line)
        seconds = float(times[-1]) if times else 0.0
        yield round(seconds * 1000)


def detect_scenes(
    input_path: Path,
    sensitivity: float,
    binary: str = "ffmpeg",
) -> list[int]:
    """Run ffmpeg scene detection and return cut timestamps in milliseconds.

    stderr is drained completely and the process reaped before returning,
    including when reading fails.
    """
    cmd = scene_command(input_path, sensitivity, binary)
    logger.info("Running %s", " ".join(cmd))

    try:
        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
        )
    except OSError as e:
        raise DetectionError(f"Unable to launch {binary}: {e}") from e

    with proc:
        try:
            cuts = list(parse_scene_cuts(proc.stderr))
        except (OSError, ValueError) as e:
            proc.kill()
            raise DetectionError(f"Error reading {binary} output: {e}") from e
        returncode = proc.wait()

    if returncode != 0 and not cuts:
        raise DetectionError(
            f"ffmpeg scene detection failed (rc={returncode}) with no output"
        )
    return cuts
