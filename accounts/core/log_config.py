"""Logging setup for scripts and embedding applications."""

from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Attach one stream handler to the ``accounts`` logger tree."""
    root = logging.getLogger("accounts")
    root.setLevel(level)
    if not any(getattr(h, "_accounts_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._accounts_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)
