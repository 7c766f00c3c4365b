"""JSON manifest schema — the contract between CLI/API and engine."""

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from numbers import Real
from pathlib import Path
from typing import Mapping

from sceneforge.errors import ConfigurationError

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("json", "ffmetadata")


def _default_binary() -> str:
    return os.environ.get("SCENEFORGE_FFMPEG", "ffmpeg")


@dataclass(frozen=True)
class SegmenterConfig:
    """Parameters of one segmentation run.

    ``stability_threshold`` and ``prefilter_threshold`` are in seconds.
    """

    stability_threshold: int = 60
    changes_threshold: float = 0.025
    pref_number: int = 30
    max_cycles: int = 3
    max_error: float = 0.25
    prefilter_threshold: int = 1
    ffmpeg_binary: str = field(default_factory=_default_binary)

    def __post_init__(self) -> None:
        for name in ("stability_threshold", "pref_number", "max_cycles", "prefilter_threshold"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        for name in ("changes_threshold", "max_error"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, Real):
                raise ConfigurationError(f"{name} must be a number, got {value!r}")

        if self.stability_threshold <= 0:
            raise ConfigurationError(
                f"stability_threshold must be positive, got {self.stability_threshold}"
            )
        if self.changes_threshold <= 0:
            raise ConfigurationError(
                f"changes_threshold must be positive, got {self.changes_threshold}"
            )
        if self.pref_number < 1:
            raise ConfigurationError(f"pref_number must be at least 1, got {self.pref_number}")
        if self.max_cycles < 1:
            raise ConfigurationError(f"max_cycles must be at least 1, got {self.max_cycles}")
        if self.max_error < 0:
            raise ConfigurationError(f"max_error must not be negative, got {self.max_error}")
        if self.prefilter_threshold < 0:
            raise ConfigurationError(
                f"prefilter_threshold must not be negative, got {self.prefilter_threshold}"
            )


# property name -> (config field, parser, description)
PROPERTIES: dict[str, tuple[str, type, str]] = {
    "stabilitythreshold": ("stability_threshold", int, "stability threshold"),
    "changesthreshold": ("changes_threshold", float, "changes threshold"),
    "prefNumber": ("pref_number", int, "preferred number of segments"),
    "maxCycles": ("max_cycles", int, "maximum number of cycles"),
    "maxError": ("max_error", float, "maximum error"),
    "ffmpeg.path": ("ffmpeg_binary", str, "ffmpeg binary"),
}


def load_properties(path: str | Path) -> dict[str, str]:
    """Read ``key=value`` service properties from a file.

    Blank lines and lines starting with ``#`` or ``!`` are skipped.
    """
    properties = {}
    for line in Path(path).read_text().splitlines():
        line = line.strip()
        if not line or line[0] in "#!":
            continue
        key, sep, value = line.partition("=")
        if not sep:
            key, _, value = line.partition(":")
        properties[key.strip()] = value.strip()
    return properties


def config_from_properties(
    properties: Mapping[str, str] | None,
    base: SegmenterConfig | None = None,
) -> SegmenterConfig:
    """Apply string-valued service properties on top of ``base``.

    Illegal values are logged and ignored, keeping the previous value.
    """
    config = base or SegmenterConfig()
    if not properties:
        return config

    logger.debug("Configuring the segmenter")
    for key, (attr, parse, label) in PROPERTIES.items():
        raw = properties.get(key)
        if raw is None:
            continue
        try:
            config = replace(config, **{attr: parse(str(raw).strip())})
        except (ValueError, ConfigurationError):
            logger.warning("Found illegal value '%s' for segmenter's %s", raw, label)
            continue
        logger.info("%s set to %s", label.capitalize(), getattr(config, attr))
    return config


@dataclass
class Manifest:
    """Top-level segmentation manifest."""

    input: Path
    output: Path | None = None
    version: str = "1"
    output_format: str = "json"
    segmenter: SegmenterConfig = field(default_factory=SegmenterConfig)

    def __post_init__(self) -> None:
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"output_format must be one of {', '.join(OUTPUT_FORMATS)}, "
                f"got {self.output_format!r}"
            )


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if "input" not in data:
        raise ValueError("Manifest must contain an 'input' field")

    known = {f.name for f in fields(SegmenterConfig)}
    options = data.get("segmenter", {})
    unknown = set(options) - known
    if unknown:
        raise ValueError(f"Unknown segmenter options: {', '.join(sorted(unknown))}")

    return Manifest(
        version=data.get("version", "1"),
        input=Path(data["input"]),
        output=Path(data["output"]) if data.get("output") else None,
        output_format=data.get("output_format", "json"),
        segmenter=SegmenterConfig(**options),
    )
