"""Log handler setup for the ec2auth process.

Everything logs through ``logging.getLogger(__name__)``; this module only
decides where records go and how they look. Records are written to stderr so
that systemd/journald captures them in agent mode.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

from ec2auth.core.config import LoggingConfig

_TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(config: LoggingConfig, stream=None) -> logging.Handler:
    """Install a single stderr handler on the ``ec2auth`` logger tree."""
    handler = logging.StreamHandler(stream or sys.stderr)
    if config.format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))

    root = logging.getLogger("ec2auth")
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(config.level)
    root.propagate = False
    return handler
