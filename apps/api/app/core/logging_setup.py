"""Process-wide logging configuration."""

import logging

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str) -> None:
    """Install a single stream handler on the root logger.

    Calling this repeatedly (for example once per ``create_app`` in tests) only
    updates the level.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    if any(getattr(handler, "_reels_handler", False) for handler in root.handlers):
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    handler._reels_handler = True  # type: ignore[attr-defined]
    root.addHandler(handler)
