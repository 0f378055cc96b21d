import logging
import os
import sys
import json
from logging.handlers import RotatingFileHandler
from pathlib import Path

# --- Constants ---
LOG_DIR = Path(os.environ.get("SHOWCASE_LOG_DIR", Path(__file__).resolve().parent.parent / 'logs'))
LOG_FILE = LOG_DIR / 'app.log'
AUDIT_LOG_FILE = LOG_DIR / 'audit.log'
MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

# Library modules log here; handlers are attached by setup_logging() only.
logger = logging.getLogger("showcase")
audit_logger = logging.getLogger("showcase.audit")
audit_logger.propagate = False


class JsonFormatter(logging.Formatter):
    """
    Formats log records as a JSON string.
    """
    def format(self, record):
        log_object = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        provider = getattr(record, "provider", None)
        if provider:
            log_object["provider"] = provider
        if record.exc_info:
            log_object['exc_info'] = self.formatException(record.exc_info)

        return json.dumps(log_object)


def setup_logging(log_level=None, log_dir=None):
    """
    Attaches the core's handlers to the ``showcase`` logger tree.

    - Console: human-readable plain text.
    - File: machine-readable JSON, with rotation.
    - Audit: prompt changes, one JSON document per line.

    The root logger is left alone so a host application keeps its own
    configuration.  Calling this more than once replaces the handlers.
    """
    if log_level is None:
        log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    log_dir = Path(log_dir) if log_dir is not None else LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.setLevel(log_level)
    for handler in list(logger.handlers) + list(audit_logger.handlers):
        handler.close()
    logger.handlers.clear()
    audit_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

    file_handler = RotatingFileHandler(
        log_dir / LOG_FILE.name,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding='utf-8'
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(JsonFormatter())

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    audit_handler = logging.FileHandler(log_dir / AUDIT_LOG_FILE.name, encoding='utf-8')
    audit_handler.setFormatter(logging.Formatter('%(asctime)s - %(message)s'))
    audit_logger.setLevel(logging.INFO)
    audit_logger.addHandler(audit_handler)

    return logger
