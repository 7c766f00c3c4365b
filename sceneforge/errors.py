"""Exceptions raised by the segmentation pipeline."""


class SegmenterError(Exception):
    """Base class for all segmentation failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidInputError(SegmenterError, ValueError):
    """The track cannot be segmented (no video, unknown duration)."""


class DetectionError(SegmenterError, RuntimeError):
    """The scene detector could not be launched or its output not read."""


class ConfigurationError(SegmenterError, ValueError):
    """A segmenter setting is out of range."""


class SegmenterInternalError(SegmenterError):
    """Unexpected failure while segmenting."""
