# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Structured logging for the Chatflow backend.

Loggers write one JSON object per line to stdout unless `logging.format`
is `text`. Execution events (node_started, node_failed, run_completed,
startup_restore) go through `log_event`, so their fields land as top-level
keys and can be filtered with `jq`.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

# LogRecord attributes that are not user-supplied `extra` fields
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update((k, v) for k, v in vars(record).items() if k not in _RECORD_ATTRS)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def get_logger(name: str, log_level: Optional[str] = None, log_format: Optional[str] = None) -> logging.Logger:
    """
    Logger with a single stdout handler.

    Level and format default to the `logging` section of the active config.
    Calling again for the same name replaces the handler instead of adding one.
    """
    if log_level is None or log_format is None:
        from chatflow.core.config import get_config
        config = get_config()
        log_level = log_level or config.log_level
        log_format = log_format or config.log_format

    handler = logging.StreamHandler(sys.stdout)
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.handlers = [handler]
    return logger


def log_event(logger: logging.Logger, event: str, level: str = "INFO", **fields: Any) -> None:
    """Log `event` as the message with `fields` attached as structured keys"""
    logger.log(getattr(logging, level.upper()), event, extra={"event": event, **fields})


def get_api_logger() -> logging.Logger:
    return get_logger("chatflow.api")


def get_service_logger(service_name: str) -> logging.Logger:
    return get_logger(f"chatflow.service.{service_name}")


def get_engine_logger(component: str) -> logging.Logger:
    return get_logger(f"chatflow.engine.{component}")
