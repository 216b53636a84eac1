"""structlog configuration for the CLI and embedding applications."""

import logging

import structlog


def configure_logging(level: str = "WARNING", *, debug: bool = False) -> None:
    """
    Configure stdlib logging and structlog with one level filter.

    Args:
        level: Log level name from the profile (``logging.level``).
        debug: Force DEBUG regardless of ``level``.
    """
    numeric_level = logging.DEBUG if debug else logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.WARNING

    logging.basicConfig(level=numeric_level, format="%(message)s")
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
    )
