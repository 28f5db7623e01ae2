"""
Logging setup for the report service.

One stdout handler on the root logger. Production writes one JSON object
per line; development gets a single readable line. Both carry the request
fields passed through ``extra=`` when a record has them.
"""

import json
import logging
import sys
from datetime import datetime, timezone

REQUEST_FIELDS = ("correlation_id", "organization_id", "duration_ms")

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(correlation_id)s] %(message)s"

# Request lines come from CorrelationIDMiddleware instead
QUIET_LOGGERS = ("uvicorn.access", "aiosqlite", "httpcore", "httpx")


class RequestContextFilter(logging.Filter):
    """Give every record the request fields so text formats never miss a key."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name in REQUEST_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, None)
        if record.correlation_id is None:
            record.correlation_id = "-"
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.lineno}",
        }
        for name in REQUEST_FIELDS:
            value = getattr(record, name, None)
            if value is not None and value != "-":
                entry[name] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", json_output: bool = True) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers = [handler]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
