# audit_trail/config/logging.py

import json
import logging
from datetime import datetime, timezone

from audit_trail.core.context import peek


class JsonFormatter(logging.Formatter):
    def format(self, record):
        log_record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "request_id": peek("request_id"),
            "remote_address": peek("remote_address"),
        }
        for key in ("entity_type", "entity_id", "version", "action"):
            if hasattr(record, key):
                log_record[key] = getattr(record, key)
        return json.dumps(log_record, default=str)


def configure_logging(log_level: str):
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)
