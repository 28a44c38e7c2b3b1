from __future__ import annotations

import logging

from demoreel.config import LoggingSettings

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(settings: LoggingSettings) -> None:
    """Configure process-wide logging once at startup.

    ``settings.loggers`` raises or lowers single stages, e.g.
    ``{"demoreel.process": "DEBUG"}`` to see every tool command line while
    the rest of the pipeline stays at the root level.
    """

    logging.basicConfig(
        level=_resolve_level(settings.level),
        format=DEFAULT_LOG_FORMAT,
        force=True,
    )
    for name, level in settings.loggers.items():
        logging.getLogger(name).setLevel(_resolve_level(level))


def _resolve_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO
