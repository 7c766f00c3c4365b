"""Console logging for the sceneforge command line."""

import logging

from rich.logging import RichHandler


def configure_logging(log_level: str = "INFO") -> None:
    """Attach a rich console handler to the ``sceneforge`` logger."""
    logger = logging.getLogger("sceneforge")
    logger.setLevel(log_level.upper())

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = RichHandler(show_path=False, rich_tracebacks=True)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)

    logging.captureWarnings(True)
