"""
Logging for KP Layout: colored console lines for people, JSON lines for the
rotating file under DATA_DIR/logs (and for the console with KP_JSON_LOGS).

setup_logging() is called once from create_app().
"""
import logging
import logging.handlers
import os
import json
from datetime import datetime, timezone

from kp_layout.core import paths

LOG_FILE = "kp.log"
LOG_MAX_BYTES = 5_000_000
LOG_BACKUPS = 5

# Attributes every LogRecord has; anything else arrived through extra=
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

QUIET_LOGGERS = ("urllib3", "werkzeug", "PIL", "reportlab", "pdfminer", "pdfplumber")


def log_dir() -> str:
    return os.path.join(paths.DATA_DIR, "logs")


def record_extras(record) -> dict:
    """Fields attached with extra= (pages, items, kp_name, route, duration_ms ...)."""
    return {k: v for k, v in vars(record).items() if k not in _STANDARD_ATTRS}


class JSONFormatter(logging.Formatter):
    """One JSON object per line; extra= fields are merged in at top level."""
    def format(self, record):
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "at": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        for key, value in record_extras(record).items():
            entry.setdefault(key, value)
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class HumanFormatter(logging.Formatter):
    """HH:MM:SS [L] logger: message  key=value ..."""
    COLORS = {"D": "\033[36m", "I": "\033[32m", "W": "\033[33m", "E": "\033[31m", "C": "\033[35m"}
    RESET = "\033[0m"

    def format(self, record):
        level = record.levelname[0]
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{ts} [{level}] {record.name}: {record.getMessage()}"
        extras = record_extras(record)
        if extras:
            line += "  " + " ".join(f"{k}={v}" for k, v in extras.items())
        if record.exc_info and record.exc_info[0]:
            line += "\n" + self.formatException(record.exc_info)
        return f"{self.COLORS.get(level, '')}{line}{self.RESET}"


def _file_handler():
    os.makedirs(log_dir(), exist_ok=True)
    fh = logging.handlers.RotatingFileHandler(
        os.path.join(log_dir(), LOG_FILE), maxBytes=LOG_MAX_BYTES,
        backupCount=LOG_BACKUPS, encoding="utf-8",
    )
    fh.setFormatter(JSONFormatter())
    return fh


def setup_logging(level=None, json_logs=None):
    """
    Configure the root logger.

    Args:
        level: log level name (default: LOG_LEVEL env, else INFO)
        json_logs: JSON console lines (default: on when KP_JSON_LOGS is 1/true/yes)
    """
    level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    if json_logs is None:
        json_logs = os.environ.get("KP_JSON_LOGS", "").lower() in ("1", "true", "yes")

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(JSONFormatter() if json_logs else HumanFormatter())
    root.addHandler(console)

    try:
        root.addHandler(_file_handler())
    except OSError as e:
        root.warning("File logging disabled: %s", e)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("kp").info("Logging initialized", extra={"log_level": level, "json_logs": json_logs})
