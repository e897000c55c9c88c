"""Logging wiring for the relay services."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger.

    Calling this more than once only updates the level, so repeated app
    construction in tests does not stack handlers.
    """

    root = logging.getLogger()
    root.setLevel(level.upper())
    if not any(getattr(h, "_relay_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._relay_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)
