"""Thin CLI entry point — builds a Manifest and calls the engine."""

import argparse
import subprocess
import sys
from dataclasses import replace
from pathlib import Path

from sceneforge.engine import process
from sceneforge.errors import SegmenterError
from sceneforge.logs import configure_logging
from sceneforge.manifest import (
    OUTPUT_FORMATS,
    Manifest,
    SegmenterConfig,
    config_from_properties,
    load_manifest,
    load_properties,
)

# CLI flag -> SegmenterConfig field
_OVERRIDES = {
    "stability_threshold": "stability_threshold",
    "changes_threshold": "changes_threshold",
    "pref_number": "pref_number",
    "max_cycles": "max_cycles",
    "max_error": "max_error",
    "ffmpeg": "ffmpeg_binary",
}


def _build_manifest(args: argparse.Namespace) -> Manifest:
    if args.manifest:
        m = load_manifest(args.manifest)
        if args.output:
            m.output = args.output
        if args.format:
            m.output_format = args.format
    else:
        fmt = args.format or "json"
        suffix = ".ffmetadata" if fmt == "ffmetadata" else ".json"
        m = Manifest(
            input=args.video,
            output=args.output or args.video.with_name(args.video.stem + "_segments" + suffix),
            output_format=fmt,
            segmenter=SegmenterConfig(),
        )

    if args.properties:
        m.segmenter = config_from_properties(load_properties(args.properties), m.segmenter)

    overrides = {
        field: getattr(args, flag)
        for flag, field in _OVERRIDES.items()
        if getattr(args, flag) is not None
    }
    if overrides:
        m.segmenter = replace(m.segmenter, **overrides)
    return m


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="sceneforge",
        description="SceneForge — split a video into content segments by scene changes.",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, ...)")
    sub = parser.add_subparsers(dest="command")

    seg = sub.add_parser("segment", help="Segment a video file")
    seg.add_argument("video", nargs="?", type=Path, help="Input video file")
    seg.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    seg.add_argument("--output", "-o", type=Path, help="Output file path")
    seg.add_argument("--format", choices=OUTPUT_FORMATS, help="Output file format")
    seg.add_argument("--stability-threshold", type=int, help="Minimum segment length (seconds)")
    seg.add_argument("--changes-threshold", type=float, help="Initial scene sensitivity (0..1)")
    seg.add_argument("--pref-number", type=int, help="Preferred number of segments")
    seg.add_argument("--max-cycles", type=int, help="Maximum detection passes")
    seg.add_argument("--max-error", type=float, help="Accepted relative deviation from --pref-number")
    seg.add_argument("--ffmpeg", type=str, help="Path to the ffmpeg binary")
    seg.add_argument(
        "--properties", type=Path,
        help="key=value file of segmenter properties (prefNumber, maxCycles, ...)",
    )

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    configure_logging(args.log_level)

    if args.command == "serve":
        from sceneforge.web import create_app
        app = create_app()
        print(f"SceneForge web API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    if not args.manifest and not args.video:
        print("Error: provide either a VIDEO argument or --manifest.", file=sys.stderr)
        sys.exit(1)

    try:
        m = _build_manifest(args)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    def on_progress(stage: str, frac: float) -> None:
        print(f"  [{frac:3.0%}] {stage}")

    try:
        result = process(m, on_progress=on_progress)
    except SegmenterError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)
    except subprocess.CalledProcessError as e:
        print(f"Error: ffprobe failed (rc={e.returncode})", file=sys.stderr)
        sys.exit(1)

    print()
    print(f"Done! {len(result.segments)} segments after {result.cycles} cycle(s)")
    if result.probe is not None:
        p = result.probe
        audio = "with audio" if p.has_audio else "no audio"
        print(f"  Video: {p.width}x{p.height} {p.codec_video} @ {p.fps:.2f} fps, {audio}")
    if result.uniform:
        print("  No reasonable segmentation found; segments are uniform")
    else:
        print(f"  Minimum segment length: {result.merge_threshold / 1000:.0f}s")
    for seg in result.segments:
        print(f"  {seg.identifier:>12}  {seg.start / 1000:9.3f}s  +{seg.duration / 1000:.3f}s")
    if m.output:
        print(f"  Output: {m.output}")
