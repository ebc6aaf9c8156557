"""JSON structured logging setup."""
import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any

EXTRA_FIELDS = (
    "bounty_id",
    "contribution_id",
    "repository",
    "event_type",
    "delivery_id",
    "outcome",
    "method",
    "path",
    "status_code",
    "duration_ms",
)


class JsonFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def __init__(self, service_name: str = "bountyhub"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }
        for key in EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info:
            entry["exception"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(*, json_format: bool = True, level: str = "INFO") -> None:
    """Install a single stream handler on the ``bountyhub`` logger."""
    root = logging.getLogger("bountyhub")
    root.setLevel(level.upper())
    root.handlers.clear()

    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    root.addHandler(handler)
