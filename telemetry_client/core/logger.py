"""Logger access for the client.

Every module logs under a ``telemetry.*`` name. Until ``configure_logging``
installs the JSON handler, the first lookup falls back to plain-text output on
the root logger so early messages still reach stderr.
"""

from __future__ import annotations

import logging

_PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_json_configured = False


def get_logger(name: str, auto_configure: bool = True) -> logging.Logger:
    if auto_configure and not _json_configured:
        # No-op when the host application already owns the root handlers.
        logging.basicConfig(level=logging.INFO, format=_PLAIN_FORMAT)
    return logging.getLogger(name)


def mark_configured() -> None:
    """Called by ``configure_logging`` once the JSON handler is installed."""
    global _json_configured
    _json_configured = True
