#!/usr/bin/env python3
"""Generate a synthetic test video for SceneForge scene detection.

Produces a 3-minute video made of solid-color shots separated by hard cuts,
with shot lengths chosen so that merging matters at the default 60 s
stability threshold:
  0-50s     blue
  50-55s    red      (short shot)
  55-110s   green
  110-113s  yellow   (short shot)
  113-116s  white    (short shot)
  116-180s  magenta
"""

import subprocess
import sys
from pathlib import Path

SHOTS = [
    ("blue", 50),
    ("red", 5),
    ("green", 55),
    ("yellow", 3),
    ("white", 3),
    ("magenta", 64),
]


def generate_test_video(output: Path) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)

    parts = [
        f"color=c={color}:s=320x240:d={seconds}:r=10[v{i}]"
        for i, (color, seconds) in enumerate(SHOTS)
    ]
    labels = "".join(f"[v{i}]" for i in range(len(SHOTS)))
    filter_complex = ";".join(parts) + f";{labels}concat=n={len(SHOTS)}:v=1:a=0[vout]"

    cmd = [
        "ffmpeg", "-y",
        "-filter_complex", filter_complex,
        "-map", "[vout]",
        "-c:v", "libx264",
        str(output),
    ]
    subprocess.run(cmd, check=True)
    print(f"Generated: {output}")


if __name__ == "__main__":
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("tests/fixtures/synthetic.mp4")
    generate_test_video(out)
