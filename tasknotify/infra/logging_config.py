# tasknotify/infra/logging_config.py
"""
Logging setup for the notifier.

Dispatch code attaches ``event_kind``, ``recipient_id``, ``channel`` and
``request_id`` to records (via ``LogContext`` or ``extra=``); both formatters
render those fields when present.
"""
import json
import logging
import sys
from datetime import datetime, timezone

# Record attributes rendered by the formatters, with their console labels.
CONTEXT_FIELDS = {
    "event_kind": "event",
    "recipient_id": "recipient",
    "channel": "channel",
    "request_id": "req",
}

# Third-party loggers and the level they are pinned to.
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "aiohttp.access": logging.WARNING,
    "PIL": logging.WARNING,
}


def _record_context(record: logging.LogRecord) -> dict:
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers in production"""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        payload.update(_record_context(record))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Colored single-line output for local runs"""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        context = _record_context(record)
        if "request_id" in context:
            context["request_id"] = str(context["request_id"])[:8]
        tags = " ".join(f"{CONTEXT_FIELDS[k]}={v}" for k, v in context.items())

        line = f"{stamp} {color}{record.levelname:<8}{self.RESET} {record.name}"
        if tags:
            line += f" [{tags}]"
        line += f": {record.getMessage()}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", use_json: bool = False) -> None:
    """
    Replace root handlers with a single stdout handler.

    Args:
        level: Root log level name
        use_json: JSON lines instead of the colored console format
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if use_json else ConsoleFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name, pinned in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(pinned)

    root.debug("Logging configured: level=%s json=%s", level, use_json)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Logger wrapper that stamps fixed context fields on every record.

    ``bind`` returns a new context; the original is left untouched, so a
    per-dispatch context can be narrowed per recipient.
    """

    def __init__(self, logger: logging.Logger, **fields):
        self.logger = logger
        self.context = {k: v for k, v in fields.items() if v is not None}

    def bind(self, **fields) -> "LogContext":
        return LogContext(self.logger, **{**self.context, **fields})

    def _log(self, level: int, msg: str, *args, **kwargs):
        extra = {**self.context, **(kwargs.pop("extra", None) or {})}
        self.logger.log(level, msg, *args, extra=extra, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self._log(logging.CRITICAL, msg, *args, **kwargs)
